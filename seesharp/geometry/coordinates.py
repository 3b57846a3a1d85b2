"""
Coordinate conventions.

Two conventions coexist:
- image space: origin top-left, y grows downward (Rect, PixelBuffer rows)
- native space: origin bottom-left, y grows upward (the rendering backend)

Every conversion between them goes through flip_rect(). Sampling and
compositing in native space go through sample_native() and NativeCanvas.
"""

from __future__ import annotations

from typing import Tuple
import numpy as np
from numpy.typing import NDArray

from seesharp.core.contracts import Rect
from seesharp.core.errors import GeometryInvalid


def flip_rect(rect: Rect, container_height: int) -> Rect:
    """
    Mirror a rect vertically inside a container of the given height.

    Converts image space to native space and back (it is its own inverse):
        y' = container_height - y - height
    """
    return Rect(rect.x, container_height - rect.y - rect.height, rect.width, rect.height)


def _check_inside(rect: Rect, width: int, height: int) -> None:
    if rect.is_empty:
        raise GeometryInvalid(f"Empty rect {rect}")
    if rect.x < 0 or rect.y < 0 or rect.max_x > width or rect.max_y > height:
        raise GeometryInvalid(f"Rect {rect} outside {width}x{height} container")


def sample_native(pixels: NDArray, native_rect: Rect) -> NDArray:
    """
    Read a native-space (bottom-left origin) region from row-major storage.

    Args:
        pixels: (H, W, ...) array stored top row first
        native_rect: Region in bottom-left-origin coordinates

    Returns:
        View of the region, top row first
    """
    height, width = pixels.shape[:2]
    _check_inside(native_rect, width, height)
    bottom_up = pixels[::-1]
    region = bottom_up[native_rect.y:native_rect.max_y, native_rect.x:native_rect.max_x]
    return region[::-1]


class NativeCanvas:
    """
    Bottom-origin compositing surface.

    Rows are stored bottom row first, so destination rects must be given in
    native space. Starts fully transparent (all zero bytes).
    """

    def __init__(self, width: int, height: int, channels: int = 4):
        if width <= 0 or height <= 0:
            raise GeometryInvalid(f"Invalid canvas size {width}x{height}")
        self.width = width
        self.height = height
        self._rows = np.zeros((height, width, channels), dtype=np.uint8)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def paste(self, region: NDArray[np.uint8], native_rect: Rect) -> None:
        """
        Write a top-row-first region at a native-space position.

        Later pastes overwrite earlier ones; nothing is blended.
        """
        _check_inside(native_rect, self.width, self.height)
        if region.shape[:2] != (native_rect.height, native_rect.width):
            raise GeometryInvalid(
                f"Region {region.shape[:2]} does not match destination {native_rect}"
            )
        self._rows[native_rect.y:native_rect.max_y, native_rect.x:native_rect.max_x] = region[::-1]

    def image_rows(self) -> NDArray[np.uint8]:
        """Canvas contents as an image-space (top row first) view."""
        return self._rows[::-1]
