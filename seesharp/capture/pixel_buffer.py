"""
Pixel Buffer for Camera Frames and Tiles.

Supports:
- Interleaved BGRA storage (4 bytes/pixel) with a row stride that may
  exceed width * 4
- Per-frame / per-tile allocation
- Freezing a buffer once it is handed downstream
"""

from __future__ import annotations

from typing import Optional, Tuple
import cv2
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from seesharp.core.contracts import Rect
from seesharp.core.errors import BufferAllocationFailed, GeometryInvalid


BYTES_PER_PIXEL = 4
DEFAULT_ROW_ALIGNMENT = 64

# Byte offsets inside one BGRA pixel
B, G, R, A = 0, 1, 2, 3

OPAQUE_BLACK = (0, 0, 0, 255)


class PixelBuffer:
    """
    A width x height grid of BGRA pixels.

    Storage is a (height, bytes_per_row) uint8 array; `pixels` is the
    (height, width, 4) view over it, so row padding is never touched.
    """

    def __init__(self, data: NDArray[np.uint8], width: int, height: int):
        """
        Wrap existing storage.

        Args:
            data: (height, bytes_per_row) uint8 storage
            width: Pixel columns
            height: Pixel rows
        """
        if width <= 0 or height <= 0:
            raise BufferAllocationFailed(f"Invalid buffer size {width}x{height}")
        if data.dtype != np.uint8 or data.ndim != 2:
            raise BufferAllocationFailed(
                f"Buffer storage must be 2-D uint8, got {data.dtype} with {data.ndim} dims"
            )
        if data.shape[0] != height or data.shape[1] < width * BYTES_PER_PIXEL:
            raise BufferAllocationFailed(
                f"Storage {data.shape} too small for {width}x{height} BGRA"
            )
        self._data = data
        self.width = int(width)
        self.height = int(height)

    # ------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------

    @classmethod
    def allocate(
        cls,
        width: int,
        height: int,
        bytes_per_row: Optional[int] = None,
        row_alignment: int = DEFAULT_ROW_ALIGNMENT,
        fill: Optional[Tuple[int, int, int, int]] = None,
    ) -> PixelBuffer:
        """
        Allocate a new zero-filled (fully transparent) buffer.

        Args:
            width: Pixel columns
            height: Pixel rows
            bytes_per_row: Explicit stride; defaults to width*4 rounded up
                to row_alignment
            row_alignment: Stride alignment in bytes
            fill: Optional BGRA value to fill every pixel with

        Raises:
            BufferAllocationFailed: If the buffer cannot be created
        """
        if width <= 0 or height <= 0:
            raise BufferAllocationFailed(f"Invalid buffer size {width}x{height}")

        min_stride = width * BYTES_PER_PIXEL
        if bytes_per_row is None:
            alignment = max(1, row_alignment)
            bytes_per_row = -(-min_stride // alignment) * alignment
        if bytes_per_row < min_stride:
            raise BufferAllocationFailed(
                f"Row stride {bytes_per_row} smaller than {min_stride} bytes"
            )

        try:
            data = np.zeros((height, bytes_per_row), dtype=np.uint8)
        except (MemoryError, ValueError) as e:
            raise BufferAllocationFailed(
                f"Could not allocate {width}x{height} buffer: {e}"
            ) from e

        buffer = cls(data, width, height)
        if fill is not None:
            buffer.pixels[...] = fill
        return buffer

    @classmethod
    def from_bgra(
        cls,
        array: NDArray[np.uint8],
        bytes_per_row: Optional[int] = None,
    ) -> PixelBuffer:
        """Copy an (H, W, 4) BGRA array into a new buffer."""
        arr = np.asarray(array)
        if arr.ndim != 3 or arr.shape[2] != BYTES_PER_PIXEL:
            raise GeometryInvalid(f"Expected (H, W, 4) BGRA array, got {arr.shape}")
        h, w = arr.shape[:2]
        buffer = cls.allocate(w, h, bytes_per_row=bytes_per_row)
        buffer.pixels[...] = arr
        return buffer

    @classmethod
    def from_rgb(cls, array: NDArray[np.uint8]) -> PixelBuffer:
        """Copy an (H, W, 3) RGB frame into an opaque BGRA buffer."""
        arr = np.ascontiguousarray(array, dtype=np.uint8)
        if arr.ndim != 3 or arr.shape[2] != 3:
            raise GeometryInvalid(f"Expected (H, W, 3) RGB array, got {arr.shape}")
        return cls.from_bgra(cv2.cvtColor(arr, cv2.COLOR_RGB2BGRA))

    # ------------------------------------------------------------
    # Views
    # ------------------------------------------------------------

    @property
    def data(self) -> NDArray[np.uint8]:
        """Raw (height, bytes_per_row) storage."""
        return self._data

    @property
    def bytes_per_row(self) -> int:
        return int(self._data.shape[1])

    @property
    def pixels(self) -> NDArray[np.uint8]:
        """(height, width, 4) BGRA view honouring the row stride."""
        used = self._data[:, : self.width * BYTES_PER_PIXEL]
        return used.reshape(self.height, self.width, BYTES_PER_PIXEL)

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def bounds(self) -> Rect:
        return Rect(0, 0, self.width, self.height)

    @property
    def is_frozen(self) -> bool:
        return not self._data.flags.writeable

    def bgr(self) -> NDArray[np.uint8]:
        """Colour channels without alpha, as a contiguous copy."""
        return np.ascontiguousarray(self.pixels[..., :3])

    def to_rgb(self) -> NDArray[np.uint8]:
        """Convert to an (H, W, 3) RGB array for display collaborators."""
        return cv2.cvtColor(np.ascontiguousarray(self.pixels), cv2.COLOR_BGRA2RGB)

    # ------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------

    def freeze(self) -> PixelBuffer:
        """Mark the buffer read-only before handing it downstream."""
        self._data.flags.writeable = False
        return self

    def copy(self) -> PixelBuffer:
        """Writable deep copy with the same stride."""
        return PixelBuffer(self._data.copy(), self.width, self.height)

    # ------------------------------------------------------------
    # Image-space operations
    # ------------------------------------------------------------

    def crop(self, rect: Rect) -> PixelBuffer:
        """
        Copy an image-space (top-left origin) region into a new buffer.

        Raises:
            GeometryInvalid: If rect is empty or leaves the buffer
        """
        if rect.is_empty or not self.bounds.contains(rect):
            raise GeometryInvalid(f"Crop {rect} outside buffer {self.width}x{self.height}")
        region = self.pixels[rect.y:rect.max_y, rect.x:rect.max_x]
        return PixelBuffer.from_bgra(region)

    def pad_to(
        self,
        width: int,
        height: int,
        fill: Tuple[int, int, int, int] = OPAQUE_BLACK,
    ) -> PixelBuffer:
        """
        Extend the buffer on the right and bottom (image space).

        Returns self unchanged if it already covers width x height.
        """
        if width <= self.width and height <= self.height:
            return self
        padded = PixelBuffer.allocate(max(width, self.width), max(height, self.height), fill=fill)
        padded.pixels[: self.height, : self.width] = self.pixels
        logger.debug(
            f"Padded buffer {self.width}x{self.height} -> {padded.width}x{padded.height}"
        )
        return padded

    def __repr__(self) -> str:
        return (
            f"PixelBuffer({self.width}x{self.height}, bytes_per_row={self.bytes_per_row}"
            f"{', frozen' if self.is_frozen else ''})"
        )


def resize_buffer(buffer: PixelBuffer, width: int = 256, height: int = 256) -> PixelBuffer:
    """
    Scale a buffer to the model's fixed input size.

    Uses bilinear interpolation; aspect ratio is not preserved.
    """
    if width <= 0 or height <= 0:
        raise GeometryInvalid(f"Invalid resize target {width}x{height}")
    if buffer.size == (width, height):
        return buffer.copy()
    src = np.ascontiguousarray(buffer.pixels)
    scaled = cv2.resize(src, (width, height), interpolation=cv2.INTER_LINEAR)
    return PixelBuffer.from_bgra(scaled)


def rotate_clockwise(array: NDArray) -> NDArray:
    """Rotate a 2-D (or H x W x C) array 90 degrees clockwise for portrait display."""
    return cv2.rotate(np.ascontiguousarray(array), cv2.ROTATE_90_CLOCKWISE)
