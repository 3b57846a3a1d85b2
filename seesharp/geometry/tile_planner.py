"""
Tile Geometry Planner.

Splits a source image into a row-major grid of fixed-size tiles. Each tile
owns a target region (clipped at the source boundary) and samples a
tile_size x tile_size crop whose bottom-right corner is pinned to the
target's bottom-right corner, so the model always receives a full tile.

All rects are in image space (origin top-left).
"""

from __future__ import annotations

from typing import List, Tuple

from seesharp.core.contracts import Rect, TileDescriptor
from seesharp.core.errors import GeometryInvalid


DEFAULT_TILE_SIZE = 256


def trailing_crop_rect(target_rect: Rect, tile_size: int = DEFAULT_TILE_SIZE) -> Rect:
    """Fixed-size crop ending at target_rect's bottom-right corner, clamped at 0."""
    crop_x = max(0, target_rect.max_x - tile_size)
    crop_y = max(0, target_rect.max_y - tile_size)
    return Rect(crop_x, crop_y, tile_size, tile_size)


def plan_tiles(
    source_width: int,
    source_height: int,
    tile_size: int = DEFAULT_TILE_SIZE,
) -> List[TileDescriptor]:
    """
    Compute the tile grid for a source image.

    Args:
        source_width: Source width in pixels
        source_height: Source height in pixels
        tile_size: Model input edge length

    Returns:
        Descriptors in row-major order (top row left to right first).
        Target rects cover [0, W) x [0, H) exactly once.

    Raises:
        GeometryInvalid: On zero or negative dimensions
    """
    if tile_size <= 0:
        raise GeometryInvalid(f"Tile size must be positive, got {tile_size}")
    if source_width <= 0 or source_height <= 0:
        raise GeometryInvalid(
            f"Source dimensions must be positive, got {source_width}x{source_height}"
        )

    tiles: List[TileDescriptor] = []
    for y in range(0, source_height, tile_size):
        for x in range(0, source_width, tile_size):
            target = Rect(
                x,
                y,
                min(tile_size, source_width - x),
                min(tile_size, source_height - y),
            )
            tiles.append(
                TileDescriptor(
                    index=len(tiles),
                    source_crop_rect=trailing_crop_rect(target, tile_size),
                    target_rect=target,
                )
            )
    return tiles


def grid_shape(
    source_width: int,
    source_height: int,
    tile_size: int = DEFAULT_TILE_SIZE,
) -> Tuple[int, int]:
    """(columns, rows) of the tile grid."""
    if tile_size <= 0:
        raise GeometryInvalid(f"Tile size must be positive, got {tile_size}")
    return (-(-source_width // tile_size), -(-source_height // tile_size))


def padded_extent(
    source_width: int,
    source_height: int,
    tile_size: int = DEFAULT_TILE_SIZE,
) -> Tuple[int, int]:
    """
    Size the source must be padded to so every crop stays in bounds.

    Only sources narrower or shorter than one tile need padding.
    """
    return (max(source_width, tile_size), max(source_height, tile_size))
