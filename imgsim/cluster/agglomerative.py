"""Agglomerative clustering of adjacent pixels.

Neighbouring pixels (4-connected) are merged whenever their colour distance is
at or below the tolerance percentile of all neighbour distances in the image,
so the cutoff adapts to each image's own colour variance.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Tuple

import numpy as np

from ..features.pixeldist import PixeldistFn
from ..io.models import ClusterSet, PixelGrid
from .stats import build_cluster_set
from .unionfind import UnionFind

logger = logging.getLogger(__name__)


def adjacency_edges(height: int, width: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return ``(lower, upper, direction)`` for every 4-connected neighbour pair.

    ``lower`` and ``upper`` are flat pixel indices (``y * width + x``), ``lower``
    always the earlier one in scan order. ``direction`` is 0 for a horizontal
    edge and 1 for a vertical one.
    """
    index = np.arange(height * width, dtype=np.int64).reshape(height, width)
    right_lower = index[:, :-1].ravel()
    right_upper = index[:, 1:].ravel()
    down_lower = index[:-1, :].ravel()
    down_upper = index[1:, :].ravel()
    lower = np.concatenate((right_lower, down_lower))
    upper = np.concatenate((right_upper, down_upper))
    direction = np.concatenate(
        (np.zeros(right_lower.size, dtype=np.int8), np.ones(down_lower.size, dtype=np.int8))
    )
    return lower, upper, direction


def percentile_threshold(distances: np.ndarray, tolerance: float) -> float:
    """Return the nearest-rank *tolerance* percentile of *distances*.

    A tolerance that selects no edge yields 0.0, so only identical
    neighbours can merge.
    """
    if not 0.0 <= tolerance <= 1.0:
        raise ValueError(f"tolerance must lie in [0, 1], got {tolerance}")
    count = int(distances.size)
    if count == 0:
        return 0.0
    rank = math.ceil(round(tolerance * count, 9))
    if rank == 0:
        return 0.0
    return float(np.partition(distances, rank - 1)[rank - 1])


def agglomerative(grid: PixelGrid, pixeldist: PixeldistFn, tolerance: float) -> ClusterSet:
    """Cluster *grid* by merging similar neighbouring pixels."""
    start = time.perf_counter()
    lower, upper, direction = adjacency_edges(grid.height, grid.width)
    colours = grid.pixels.reshape(-1, grid.channels)
    distances = np.asarray(pixeldist(colours[lower], colours[upper]), dtype=np.float64)

    threshold = percentile_threshold(distances, tolerance)
    logger.debug(
        "%s: %.0fth-centile distance over %d edges = %.5f",
        grid.name,
        tolerance * 100.0,
        distances.size,
        threshold,
    )

    # ties fall back to scan order of the lower endpoint, horizontal edges first
    order = np.lexsort((direction, lower, distances))
    accepted = int(np.searchsorted(distances[order], threshold, side="right"))
    selected = order[:accepted]

    forest = UnionFind(grid.pixel_count)
    merges = 0
    for a, b in zip(lower[selected].tolist(), upper[selected].tolist()):
        if forest.union(a, b):
            merges += 1

    cluster_set = build_cluster_set(grid, forest.roots())
    logger.debug(
        "%s: %d merges over %d accepted edges -> %d clusters in %.2fs",
        grid.name,
        merges,
        accepted,
        len(cluster_set),
        time.perf_counter() - start,
    )
    return cluster_set
