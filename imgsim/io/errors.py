"""Error types raised by the imgsim pipeline."""

from __future__ import annotations


class ImgsimError(Exception):
    """Base class for every error raised by imgsim."""


class InvalidConfiguration(ImgsimError):
    """Raised for unknown options, out-of-range values or invalid combinations."""


class InsufficientInput(ImgsimError):
    """Raised when fewer than two images are available for comparison."""

    def __init__(self, available: int) -> None:
        super().__init__(f"Need at least 2 images to compare, got {available}")
        self.available = available


class ClusteringFailure(ImgsimError):
    """Raised when an image cannot be clustered, e.g. a zero-size grid."""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class ComparisonFailure(ImgsimError):
    """Raised when a pair of cluster sets produces an invalid similarity."""

    def __init__(self, image_a: str, image_b: str, reason: str) -> None:
        super().__init__(f"{image_a} <-> {image_b}: {reason}")
        self.image_a = image_a
        self.image_b = image_b
        self.reason = reason


class PairNotFoundError(ImgsimError, KeyError):
    """Raised when a ranking is asked for a pair it does not contain."""

    def __init__(self, image_a: str, image_b: str) -> None:
        super().__init__(f"No similarity recorded for {image_a} <-> {image_b}")
        self.image_a = image_a
        self.image_b = image_b

    def __str__(self) -> str:
        return str(self.args[0])
