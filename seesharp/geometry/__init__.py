"""
Tiling Geometry.

Responsibilities:
- Trailing-aligned tile planning
- Image space <-> native space conversion
"""

from .coordinates import flip_rect, sample_native, NativeCanvas
from .tile_planner import (
    DEFAULT_TILE_SIZE,
    plan_tiles,
    trailing_crop_rect,
    grid_shape,
    padded_extent,
)
