"""
Channel Packing / Unpacking.

Converts between the model's planar float layout and interleaved 8-bit
BGRA buffers.

unpack() must stay bit-exact with the device pipeline:
- scale by 255 in float32
- truncate toward zero (NOT round-to-nearest)
- clamp to [0, 255]
- alpha fixed at 255
"""

from __future__ import annotations

from typing import Optional
import numpy as np
from numpy.typing import NDArray

from seesharp.capture.pixel_buffer import PixelBuffer, B, G, R, A
from seesharp.core.contracts import PlanarTensor
from seesharp.core.errors import GeometryInvalid


_SCALE = np.float32(255.0)


def to_bytes(values: NDArray) -> NDArray[np.uint8]:
    """Normalized floats -> bytes: float32 scale, truncate, clamp. NaN maps to 0."""
    scaled = np.asarray(values, dtype=np.float32) * _SCALE
    scaled = np.nan_to_num(scaled, nan=0.0, posinf=255.0, neginf=0.0)
    return np.clip(np.trunc(scaled), 0, 255).astype(np.uint8)


def unpack(
    tensor: PlanarTensor,
    width: int,
    height: int,
    destination: Optional[PixelBuffer] = None,
) -> PixelBuffer:
    """
    Convert a channel-major tensor into an interleaved BGRA buffer.

    For pixel (x, y): idx = y*width + x, channel_size = width*height,
    R = tensor[idx], G = tensor[channel_size + idx], B = tensor[2*channel_size + idx].

    Args:
        tensor: Planar model output (R, G, B planes)
        width: Output width
        height: Output height
        destination: Optional buffer to write into; its row padding is untouched

    Returns:
        The destination buffer (newly allocated if none was given)

    Raises:
        GeometryInvalid: If sizes disagree
    """
    if width <= 0 or height <= 0:
        raise GeometryInvalid(f"Invalid unpack size {width}x{height}")
    if tensor.data.size != 3 * width * height:
        raise GeometryInvalid(
            f"Tensor of {tensor.data.size} values cannot fill {width}x{height}"
        )

    if destination is None:
        destination = PixelBuffer.allocate(width, height)
    elif destination.size != (width, height):
        raise GeometryInvalid(
            f"Destination is {destination.width}x{destination.height}, expected {width}x{height}"
        )

    planes = to_bytes(tensor.data).reshape(3, height, width)
    pixels = destination.pixels
    pixels[..., B] = planes[2]
    pixels[..., G] = planes[1]
    pixels[..., R] = planes[0]
    pixels[..., A] = 255
    return destination


def pack(buffer: PixelBuffer) -> PlanarTensor:
    """
    Convert a BGRA buffer into a channel-major tensor in [0, 1].

    Each value is the smallest float32 not below byte/255, so truncation in
    unpack() recovers the original byte exactly. Alpha is dropped.
    """
    pixels = buffer.pixels
    rgb = np.stack([pixels[..., R], pixels[..., G], pixels[..., B]]).astype(np.float64)
    exact = rgb / 255.0

    normalized = exact.astype(np.float32)
    below = normalized.astype(np.float64) < exact
    normalized[below] = np.nextafter(normalized[below], np.float32(2.0))

    return PlanarTensor(data=normalized.reshape(-1), width=buffer.width, height=buffer.height)
