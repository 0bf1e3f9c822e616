"""Load images from disk into downsampled pixel grids."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import numpy as np
from PIL import Image, UnidentifiedImageError
from PIL.Image import DecompressionBombError

from ..io.models import PixelGrid

logger = logging.getLogger(__name__)


def downsample(img: Image.Image, max_width: int, max_height: int) -> Image.Image:
    """Return *img* shrunk to fit within max_width x max_height, keeping its aspect ratio.

    Images already inside the bounds are returned unchanged; nothing is upscaled.
    """
    if max_width <= 0 or max_height <= 0:
        raise ValueError("max_width and max_height must be positive integers")

    width, height = img.size
    if width <= max_width and height <= max_height:
        return img
    scale = min(max_width / width, max_height / height)
    target_w = max(1, min(max_width, round(width * scale)))
    target_h = max(1, min(max_height, round(height * scale)))
    return img.resize((target_w, target_h), Image.Resampling.LANCZOS)


def pixel_grid_from_image(
    name: str, img: Image.Image, max_width: int, max_height: int
) -> PixelGrid:
    """Convert a Pillow image into an RGBA PixelGrid within the size bounds."""
    rgba = img.convert("RGBA") if img.mode != "RGBA" else img
    resized = downsample(rgba, max_width, max_height)
    return PixelGrid(name=name, pixels=np.asarray(resized))


def load_image(image_path: Path, max_width: int, max_height: int) -> PixelGrid | None:
    """Return the PixelGrid for *image_path*, or None if it is not a readable image."""
    try:
        with Image.open(image_path) as img:
            img.load()
            return pixel_grid_from_image(image_path.name, img, max_width, max_height)
    except UnidentifiedImageError:
        logger.debug("Skipping %s: not a supported image", image_path)
    except (DecompressionBombError, OSError, ValueError) as exc:
        logger.warning("Skipping %s: %s", image_path.name, exc)
    return None


def load_images(input_dir: str | Path, max_width: int, max_height: int) -> List[PixelGrid]:
    """Load every readable image directly inside *input_dir*, sorted by file name."""
    directory = Path(input_dir)
    if not directory.exists():
        raise FileNotFoundError(f"Input directory does not exist: {directory}")
    if not directory.is_dir():
        raise NotADirectoryError(f"Input path is not a directory: {directory}")

    grids: List[PixelGrid] = []
    for path in sorted(directory.iterdir()):
        if not path.is_file():
            continue
        grid = load_image(path, max_width, max_height)
        if grid is not None:
            logger.debug("Loaded %s as %dx%d", path.name, grid.width, grid.height)
            grids.append(grid)
    return grids
