"""Perceptual hashes used to annotate reports."""

from __future__ import annotations

import imagehash
import numpy as np
from PIL import Image

from ..io.models import PixelGrid

_HASH_SIZE = 8


def compute_phash(grid: PixelGrid) -> str:
    """Return the perceptual hash of *grid* as a hex string."""
    if grid.pixel_count == 0:
        raise ValueError(f"{grid.name}: cannot hash an empty grid")
    img = Image.fromarray(np.ascontiguousarray(grid.pixels)).convert("RGB")
    return str(imagehash.phash(img, hash_size=_HASH_SIZE))


def hamming_distance_hex(h1: str, h2: str) -> int:
    """Return the Hamming distance between two hexadecimal hash strings."""
    return int(imagehash.hex_to_hash(h1) - imagehash.hex_to_hash(h2))
