"""Render cluster sets as images for visual inspection."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

import cv2
import numpy as np
from PIL import Image

from .models import ClusterSet

logger = logging.getLogger(__name__)

_GOLDEN_RATIO_CONJUGATE = 0.618033988749895
_SATURATION = 200
_VALUES = (255, 190)


def label_palette(count: int) -> np.ndarray:
    """Return *count* well separated RGB colours, one per cluster id."""
    if count <= 0:
        return np.zeros((0, 3), dtype=np.uint8)
    ids = np.arange(count)
    # OpenCV stores 8-bit hue in [0, 180)
    hues = np.floor((ids * _GOLDEN_RATIO_CONJUGATE % 1.0) * 180.0)
    values = np.where(ids % 2 == 0, _VALUES[0], _VALUES[1])
    hsv = np.stack([hues, np.full(count, _SATURATION), values], axis=1).astype(np.uint8)
    rgb = cv2.cvtColor(hsv.reshape(1, count, 3), cv2.COLOR_HSV2RGB)
    return rgb.reshape(count, 3)


def render_cluster_labels(cluster_set: ClusterSet) -> Image.Image:
    """Paint each cluster in its own distinct colour."""
    palette = label_palette(len(cluster_set))
    return Image.fromarray(np.ascontiguousarray(palette[cluster_set.labels]))


def render_cluster_means(cluster_set: ClusterSet) -> Image.Image:
    """Paint each pixel with the mean colour of its cluster."""
    return Image.fromarray(np.ascontiguousarray(cluster_set.colour_map()))


def save_debug_images(cluster_sets: Iterable[ClusterSet], out_dir: str | Path) -> List[Path]:
    """Write ``<name>.clusters.png`` and ``<name>.labels.png`` for every cluster set."""
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    written: List[Path] = []
    for cluster_set in cluster_sets:
        means_path = out_path / f"{cluster_set.name}.clusters.png"
        labels_path = out_path / f"{cluster_set.name}.labels.png"
        render_cluster_means(cluster_set).save(means_path, format="PNG")
        render_cluster_labels(cluster_set).save(labels_path, format="PNG")
        logger.debug("Wrote debug images for %s to %s", cluster_set.name, out_path)
        written.extend((means_path, labels_path))
    return written
