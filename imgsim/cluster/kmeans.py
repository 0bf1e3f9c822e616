"""K-means clustering of pixel colours with silhouette-based choice of k."""

from __future__ import annotations

import logging
import time
from typing import Optional, Tuple

import numpy as np
from sklearn.metrics import silhouette_score

from ..features.pixeldist import PixeldistFn
from ..io.models import ClusterSet, PixelGrid
from .stats import build_cluster_set

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 50
SILHOUETTE_SAMPLE_SIZE = 1024


def initial_centroids(colours: np.ndarray, k: int, pixeldist: PixeldistFn) -> np.ndarray:
    """Pick *k* evenly spaced colours from *colours* ordered by distance from black.

    *colours* must be distinct and lexicographically sorted (as returned by
    ``np.unique``), which makes the ordering of equidistant colours stable.
    """
    reference = np.zeros(colours.shape[1], dtype=np.float64)
    if colours.shape[1] == 4:
        reference[3] = 255.0
    order = np.argsort(np.asarray(pixeldist(colours, reference)), kind="stable")
    picks = np.round(np.linspace(0, colours.shape[0] - 1, k)).astype(np.int64)
    return colours[order[picks]].astype(np.float64)


def assign(colours: np.ndarray, centroids: np.ndarray, pixeldist: PixeldistFn) -> np.ndarray:
    """Return the index of the nearest centroid for each colour, lowest index on ties."""
    distances = np.stack(
        [np.asarray(pixeldist(colours, centroid)) for centroid in centroids], axis=1
    )
    return np.argmin(distances, axis=1)


def lloyd(
    colours: np.ndarray,
    weights: np.ndarray,
    k: int,
    pixeldist: PixeldistFn,
    max_iterations: int = MAX_ITERATIONS,
) -> Tuple[np.ndarray, int]:
    """Run weighted k-means over distinct *colours*; return assignments and iterations used."""
    centroids = initial_centroids(colours, k, pixeldist)
    assignment = assign(colours, centroids, pixeldist)
    iterations = 0
    for iterations in range(1, max_iterations + 1):
        totals = np.bincount(assignment, weights=weights, minlength=k)
        filled = totals > 0
        for channel in range(colours.shape[1]):
            sums = np.bincount(assignment, weights=weights * colours[:, channel], minlength=k)
            # an emptied centroid keeps its previous position
            centroids[filled, channel] = sums[filled] / totals[filled]
        updated = assign(colours, centroids, pixeldist)
        if np.array_equal(updated, assignment):
            break
        assignment = updated
    return assignment, iterations


def silhouette(points: np.ndarray, labels: np.ndarray, pixeldist: PixeldistFn) -> float:
    """Mean silhouette coefficient of *points* under *labels*, using colour distance.

    A sample with a single label, or with every point in its own cluster,
    scores 0.0.
    """
    count = points.shape[0]
    present = np.unique(labels).size
    if present < 2 or present >= count:
        return 0.0
    distances = np.stack([np.asarray(pixeldist(points, point), dtype=np.float64) for point in points])
    return float(silhouette_score(distances, labels, metric="precomputed"))


def silhouette_sample(pixel_count: int, limit: int = SILHOUETTE_SAMPLE_SIZE) -> np.ndarray:
    """Evenly strided pixel indices used to estimate the silhouette."""
    if pixel_count <= limit:
        return np.arange(pixel_count, dtype=np.int64)
    return np.unique(np.round(np.linspace(0, pixel_count - 1, limit)).astype(np.int64))


def k_means(
    grid: PixelGrid,
    pixeldist: PixeldistFn,
    max_k: int,
    silhouette_threshold: float,
) -> ClusterSet:
    """Cluster *grid* by colour, choosing k in ``2..max_k`` by silhouette."""
    if max_k < 2:
        raise ValueError(f"max_k must be at least 2, got {max_k}")
    start = time.perf_counter()
    flat = grid.pixels.reshape(-1, grid.channels)
    distinct, inverse, counts = np.unique(flat, axis=0, return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)
    if distinct.shape[0] < 2:
        logger.debug("%s: single colour, returning one cluster", grid.name)
        return build_cluster_set(grid, np.zeros(grid.pixel_count, dtype=np.int64))

    colours = distinct.astype(np.float64)
    weights = counts.astype(np.float64)
    sample = inverse[silhouette_sample(grid.pixel_count)]

    best_score = -np.inf
    best_k = 0
    best_assignment: Optional[np.ndarray] = None
    for k in range(2, min(max_k, distinct.shape[0]) + 1):
        assignment, iterations = lloyd(colours, weights, k, pixeldist)
        score = silhouette(colours[sample], assignment[sample], pixeldist)
        logger.debug(
            "%s: k=%d silhouette=%.4f after %d iterations", grid.name, k, score, iterations
        )
        if score > best_score:
            best_score, best_k, best_assignment = score, k, assignment
        if silhouette_threshold < 1.0 and score >= silhouette_threshold:
            break

    cluster_set = build_cluster_set(grid, best_assignment[inverse])
    logger.debug(
        "%s: chose k=%d (silhouette %.4f) -> %d clusters in %.2fs",
        grid.name,
        best_k,
        best_score,
        len(cluster_set),
        time.perf_counter() - start,
    )
    return cluster_set
