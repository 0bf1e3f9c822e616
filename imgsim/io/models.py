"""Data models shared across the imgsim pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Tuple

import numpy as np

from .errors import PairNotFoundError


@dataclass(frozen=True, slots=True, eq=False)
class PixelGrid:
    """Downsampled pixel data for one image, shaped (height, width, channels)."""

    name: str
    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = np.asarray(self.pixels)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise ValueError(
                f"{self.name}: pixels must have shape (height, width, 3|4), got {pixels.shape}"
            )
        if pixels.dtype != np.uint8:
            if pixels.size and (pixels.min() < 0 or pixels.max() > 255):
                raise ValueError(f"{self.name}: channel values must lie in [0, 255]")
            pixels = pixels.astype(np.uint8)
        pixels = np.array(pixels, dtype=np.uint8, copy=True)
        pixels.flags.writeable = False
        object.__setattr__(self, "pixels", pixels)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2])

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


@dataclass(frozen=True, slots=True)
class Cluster:
    """One region of a cluster set with its derived statistics."""

    cluster_id: int
    size: int
    fraction: float
    mean_colour: Tuple[float, ...]
    centroid: Tuple[float, float]
    bbox: Tuple[int, int, int, int]


@dataclass(frozen=True, slots=True, eq=False)
class ClusterSet:
    """Partition of one image's pixels into labelled clusters.

    ``labels`` holds the cluster id of every pixel and ``clusters[i]`` describes
    the cluster whose id is ``i``.
    """

    name: str
    labels: np.ndarray
    clusters: Tuple[Cluster, ...]

    @property
    def height(self) -> int:
        return int(self.labels.shape[0])

    @property
    def width(self) -> int:
        return int(self.labels.shape[1])

    @property
    def pixel_count(self) -> int:
        return int(self.labels.size)

    def __len__(self) -> int:
        return len(self.clusters)

    def __iter__(self) -> Iterator[Cluster]:
        return iter(self.clusters)

    def pixels_of(self, cluster_id: int) -> np.ndarray:
        """Return the ``(x, y)`` positions belonging to *cluster_id*."""
        ys, xs = np.nonzero(self.labels == cluster_id)
        return np.column_stack((xs, ys))

    def colour_map(self) -> np.ndarray:
        """Return a (height, width, channels) image of every pixel's cluster mean colour."""
        if not self.clusters:
            return np.zeros((self.height, self.width, 3), dtype=np.uint8)
        means = np.array([cluster.mean_colour for cluster in self.clusters], dtype=np.float64)
        return np.clip(np.rint(means[self.labels]), 0, 255).astype(np.uint8)


@dataclass(frozen=True, slots=True)
class SimilarityScore:
    """Similarity of one unordered image pair, 1.0 meaning identical."""

    image_a: str
    image_b: str
    score: float


class SimilarityRanking:
    """All pairwise scores of a run, strongest first."""

    def __init__(self, scores: Iterable[SimilarityScore], order: Iterable[str] = ()) -> None:
        positions: Dict[str, int] = {name: index for index, name in enumerate(order)}

        def sort_key(item: SimilarityScore) -> tuple:
            return (
                -item.score,
                positions.get(item.image_a, len(positions)),
                positions.get(item.image_b, len(positions)),
                item.image_a,
                item.image_b,
            )

        self._scores: Tuple[SimilarityScore, ...] = tuple(sorted(scores, key=sort_key))
        self._lookup: Dict[Tuple[str, str], SimilarityScore] = {}
        for item in self._scores:
            self._lookup[(item.image_a, item.image_b)] = item
            self._lookup[(item.image_b, item.image_a)] = item

    def __len__(self) -> int:
        return len(self._scores)

    def __iter__(self) -> Iterator[SimilarityScore]:
        return iter(self._scores)

    def __getitem__(self, index: int) -> SimilarityScore:
        return self._scores[index]

    def get(self, image_a: str, image_b: str) -> float:
        """Return the score of the pair regardless of argument order."""
        item = self._lookup.get((image_a, image_b))
        if item is None:
            raise PairNotFoundError(image_a, image_b)
        return item.score

    def top(self, limit: int) -> List[SimilarityScore]:
        if limit <= 0:
            return []
        return list(self._scores[:limit])


@dataclass(slots=True)
class RunReport:
    """High-level summary of one comparison run."""

    total_images: int
    clustered: int
    pairs: int
    groups: int
    largest_group: int
    link_threshold: float
    options: Dict[str, object] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
