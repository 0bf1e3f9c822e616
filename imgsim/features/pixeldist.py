"""Colour distance metrics between pixels.

Both metrics take single colours or arrays of colours (channels on the last
axis) and broadcast like numpy. Results are normalized to the unit interval.
"""

from __future__ import annotations

from enum import Enum
from typing import Callable, Union

import numpy as np
from numpy.typing import ArrayLike

Distance = Union[float, np.ndarray]
PixeldistFn = Callable[[ArrayLike, ArrayLike], Distance]

_EUCLIDEAN_MAX = float(np.sqrt(3.0 * 255.0**2))
_REDMEAN_MAX = float(255.0 * np.sqrt(8.0 + 255.0 / 256.0))


class PixeldistAlg(Enum):
    """Algorithm used to measure the colour distance between two pixels."""

    EUCLIDEAN = "Euclidean"
    REDMEAN = "Redmean"

    @classmethod
    def from_name(cls, value: str) -> "PixeldistAlg":
        key = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown pixel distance algorithm: {value!r}")


def euclidean(colour_a: ArrayLike, colour_b: ArrayLike) -> Distance:
    """Straight-line distance between two sRGB colours."""
    a, b = _as_float(colour_a), _as_float(colour_b)
    delta = a[..., :3] - b[..., :3]
    dist = np.sqrt(np.sum(delta * delta, axis=-1)) / _EUCLIDEAN_MAX
    return _finish(a, b, dist)


def redmean(colour_a: ArrayLike, colour_b: ArrayLike) -> Distance:
    """Euclidean distance with channel weights scaled by the mean red value."""
    a, b = _as_float(colour_a), _as_float(colour_b)
    delta = a[..., :3] - b[..., :3]
    delta_sq = delta * delta
    rmean = (a[..., 0] + b[..., 0]) / 2.0
    weighted = (
        (2.0 + rmean / 256.0) * delta_sq[..., 0]
        + 4.0 * delta_sq[..., 1]
        + (2.0 + (255.0 - rmean) / 256.0) * delta_sq[..., 2]
    )
    dist = np.sqrt(weighted) / _REDMEAN_MAX
    return _finish(a, b, dist)


def alpha_only(alpha_a: ArrayLike, alpha_b: ArrayLike) -> Distance:
    """Distance between two pixels when at least one of them is fully transparent."""
    delta = np.abs(np.asarray(alpha_a, dtype=np.float64) - np.asarray(alpha_b, dtype=np.float64))
    result = delta / 255.0
    return float(result) if np.ndim(result) == 0 else result


_ALGORITHMS = {
    PixeldistAlg.EUCLIDEAN: euclidean,
    PixeldistAlg.REDMEAN: redmean,
}


def get_pixeldist(alg: PixeldistAlg) -> PixeldistFn:
    """Return the distance function implementing *alg*."""
    try:
        return _ALGORITHMS[alg]
    except KeyError:
        raise ValueError(f"Unsupported pixel distance algorithm: {alg!r}") from None


def _as_float(colour: ArrayLike) -> np.ndarray:
    values = np.asarray(colour, dtype=np.float64)
    if values.ndim == 0 or values.shape[-1] not in (3, 4):
        raise ValueError(f"Colours need 3 or 4 channels, got shape {values.shape}")
    return values


def _finish(a: np.ndarray, b: np.ndarray, dist: np.ndarray) -> Distance:
    if a.shape[-1] == 4 and b.shape[-1] == 4:
        alpha_a, alpha_b = a[..., 3], b[..., 3]
        transparent = (alpha_a == 0) | (alpha_b == 0)
        if np.any(transparent):
            dist = np.where(transparent, alpha_only(alpha_a, alpha_b), dist)
    return float(dist) if np.ndim(dist) == 0 else dist
