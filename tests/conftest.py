from __future__ import annotations

import sys

import numpy as np
import pytest
from loguru import logger

from seesharp.capture.pixel_buffer import PixelBuffer
from seesharp.enhancement.channel_packing import pack


def make_buffer(width: int, height: int, seed: int = 0, bytes_per_row=None) -> PixelBuffer:
    """Opaque buffer with random colour bytes."""
    rng = np.random.default_rng(seed)
    bgra = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    bgra[..., 3] = 255
    return PixelBuffer.from_bgra(bgra, bytes_per_row=bytes_per_row)


class FailingModel:
    """Identity model that raises on selected call numbers."""

    def __init__(self, fail_on):
        self.fail_on = set(fail_on)
        self.calls = 0

    def __call__(self, buffer):
        call = self.calls
        self.calls += 1
        if call in self.fail_on:
            raise RuntimeError(f"inference failed on call {call}")
        return pack(buffer)


@pytest.fixture
def identity_model():
    """Echoes the input, scaled to [0, 1]."""
    return pack


@pytest.fixture
def random_buffer():
    return make_buffer


@pytest.fixture
def isolated_logging():
    """Restore a single stderr sink after tests that replace loguru's sinks."""
    yield
    logger.remove()
    logger.add(sys.stderr)
