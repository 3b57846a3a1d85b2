"""
Frame Buffers.

Responsibilities:
- Typed BGRA views over raw camera memory
- Resizing frames to the model input size
- Display rotation
"""

from .pixel_buffer import PixelBuffer, resize_buffer, rotate_clockwise
