"""
Error taxonomy for the enhancement core.

- ModelInvocationFailed: absorbed per tile, the tile is skipped
- BufferAllocationFailed: aborts the current frame, reported upstream
- GeometryInvalid: programming error, fatal
"""

from __future__ import annotations

from typing import Optional


class SeeSharpError(Exception):
    """Base class for all errors raised by the core."""


class ModelInvocationFailed(SeeSharpError):
    """The external enhancement model could not produce a usable tensor."""

    def __init__(self, message: str, tile_index: Optional[int] = None):
        super().__init__(message)
        self.tile_index = tile_index


class BufferAllocationFailed(SeeSharpError):
    """A destination pixel buffer could not be created."""


class GeometryInvalid(SeeSharpError, ValueError):
    """Zero/negative dimensions or mismatched frame shapes."""
