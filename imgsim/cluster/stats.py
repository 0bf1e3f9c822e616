"""Turn a per-pixel labelling into a ClusterSet with derived statistics."""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike

from ..io.models import Cluster, ClusterSet, PixelGrid


def relabel_in_scan_order(raw_labels: ArrayLike) -> np.ndarray:
    """Renumber arbitrary labels to ``0..k-1`` by the scan position of each label's first pixel."""
    flat = np.asarray(raw_labels).reshape(-1)
    if flat.size == 0:
        return np.zeros(0, dtype=np.int64)
    _, first_index, inverse = np.unique(flat, return_index=True, return_inverse=True)
    order = np.argsort(first_index, kind="stable")
    remap = np.empty(order.size, dtype=np.int64)
    remap[order] = np.arange(order.size, dtype=np.int64)
    return remap[inverse.reshape(-1)]


def build_cluster_set(grid: PixelGrid, raw_labels: ArrayLike) -> ClusterSet:
    """Return the ClusterSet for *grid* partitioned by *raw_labels*.

    *raw_labels* must hold one label per pixel, in grid-scan order or shaped
    like the grid. Labels need not be contiguous.
    """
    if grid.pixel_count == 0:
        raise ValueError(f"{grid.name}: cannot build clusters for an empty grid")
    flat_labels = relabel_in_scan_order(raw_labels)
    if flat_labels.size != grid.pixel_count:
        raise ValueError(
            f"{grid.name}: expected {grid.pixel_count} labels, got {flat_labels.size}"
        )

    width, height = grid.width, grid.height
    total = grid.pixel_count
    count = int(flat_labels.max()) + 1

    colours = grid.pixels.reshape(-1, grid.channels).astype(np.float64)
    sizes = np.bincount(flat_labels, minlength=count)
    sums = np.stack(
        [
            np.bincount(flat_labels, weights=colours[:, channel], minlength=count)
            for channel in range(grid.channels)
        ],
        axis=1,
    )
    means = sums / sizes[:, None]

    ys, xs = np.divmod(np.arange(total, dtype=np.int64), width)
    centre_x = np.bincount(flat_labels, weights=xs + 0.5, minlength=count) / sizes
    centre_y = np.bincount(flat_labels, weights=ys + 0.5, minlength=count) / sizes

    left = np.full(count, width, dtype=np.int64)
    top = np.full(count, height, dtype=np.int64)
    right = np.full(count, -1, dtype=np.int64)
    bottom = np.full(count, -1, dtype=np.int64)
    np.minimum.at(left, flat_labels, xs)
    np.minimum.at(top, flat_labels, ys)
    np.maximum.at(right, flat_labels, xs)
    np.maximum.at(bottom, flat_labels, ys)

    clusters = tuple(
        Cluster(
            cluster_id=index,
            size=int(sizes[index]),
            fraction=float(sizes[index]) / total,
            mean_colour=tuple(float(value) for value in means[index]),
            centroid=(float(centre_x[index]) / width, float(centre_y[index]) / height),
            bbox=(int(left[index]), int(top[index]), int(right[index]), int(bottom[index])),
        )
        for index in range(count)
    )

    labels = flat_labels.reshape(height, width)
    labels.flags.writeable = False
    return ClusterSet(name=grid.name, labels=labels, clusters=clusters)
