"""Shared fixtures for imgsim tests."""

import numpy as np
import pytest

from imgsim.io.config import ImgsimOptions
from imgsim.io.models import PixelGrid

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
YELLOW = (255, 255, 0)


def _make_grid(rows, name="grid"):
    return PixelGrid(name=name, pixels=np.array(rows, dtype=np.uint8))


@pytest.fixture
def make_grid():
    """Factory building a PixelGrid from nested rows of colours."""
    return _make_grid


@pytest.fixture
def split_grid():
    """4x4 grid, left half red and right half blue."""
    rows = [[RED, RED, BLUE, BLUE] for _ in range(4)]
    return _make_grid(rows, name="split.png")


@pytest.fixture
def banded_grid():
    """4x4 grid, top half green and bottom half yellow."""
    rows = [[GREEN] * 4, [GREEN] * 4, [YELLOW] * 4, [YELLOW] * 4]
    return _make_grid(rows, name="banded.png")


@pytest.fixture
def noisy_grid():
    """Deterministic 12x16 grid of random colours."""
    rng = np.random.default_rng(7)
    return PixelGrid(name="noisy.png", pixels=rng.integers(0, 256, size=(12, 16, 3), dtype=np.uint8))


@pytest.fixture
def blocky_grid():
    """Deterministic 16x16 grid of four noisy colour blocks."""
    rng = np.random.default_rng(11)
    base = np.zeros((16, 16, 3), dtype=np.int64)
    base[:8, :8] = (200, 40, 40)
    base[:8, 8:] = (40, 200, 40)
    base[8:, :8] = (40, 40, 200)
    base[8:, 8:] = (220, 220, 60)
    noise = rng.integers(-12, 13, size=base.shape)
    return PixelGrid(name="blocky.png", pixels=np.clip(base + noise, 0, 255).astype(np.uint8))


@pytest.fixture
def default_options():
    """Default options with a single worker."""
    return ImgsimOptions(workers=1)
