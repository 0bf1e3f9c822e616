"""Dispatch pixel grids to the configured clustering algorithm."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from ..features.pixeldist import get_pixeldist
from ..io.errors import ClusteringFailure
from ..io.models import ClusterSet, PixelGrid
from .agglomerative import agglomerative
from .kmeans import k_means

if TYPE_CHECKING:
    from ..io.config import ImgsimOptions


class ClusteringAlg(Enum):
    """Algorithm used to group pixels into clusters."""

    AGGLOMERATIVE = "Agglomerative"
    KMEANS = "KMeans"

    @classmethod
    def from_name(cls, value: str) -> "ClusteringAlg":
        key = str(value).strip().lower().replace("-", "").replace("_", "")
        aliases = {
            "agglomerative": cls.AGGLOMERATIVE,
            "agglo": cls.AGGLOMERATIVE,
            "agg": cls.AGGLOMERATIVE,
            "kmeans": cls.KMEANS,
        }
        try:
            return aliases[key]
        except KeyError:
            raise ValueError(f"Unknown clustering algorithm: {value!r}") from None


def get_clusters(grid: PixelGrid, options: "ImgsimOptions") -> ClusterSet:
    """Cluster *grid* with the algorithm and metric selected in *options*."""
    if grid.pixel_count == 0:
        raise ClusteringFailure(grid.name, f"empty pixel grid ({grid.width}x{grid.height})")

    pixeldist = get_pixeldist(options.pixeldist_alg)
    if options.clustering_alg is ClusteringAlg.AGGLOMERATIVE:
        return agglomerative(grid, pixeldist, options.tolerance)
    if options.clustering_alg is ClusteringAlg.KMEANS:
        return k_means(grid, pixeldist, options.max_k, options.silhouette_threshold)
    raise ClusteringFailure(grid.name, f"unsupported clustering algorithm {options.clustering_alg!r}")
