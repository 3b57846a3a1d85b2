"""
Core data contracts for the enhancement core.

All components exchange these types:
- Rect / TileDescriptor for tiling geometry (image space, top-left origin)
- PlanarTensor for the enhancement model's channel-major output
- Detection for the optional segmentation collaborator
- Result types handed to display collaborators
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple
import numpy as np
from numpy.typing import NDArray

from seesharp.core.errors import GeometryInvalid

if TYPE_CHECKING:
    from seesharp.capture.pixel_buffer import PixelBuffer


# ============================================================
# ENUMERATIONS
# ============================================================

class ConfidenceLevel(IntEnum):
    """Ordinal depth confidence codes reported by the depth sensor."""
    LOW = 0
    MEDIUM = 1
    HIGH = 2


# ============================================================
# GEOMETRY
# ============================================================

@dataclass(frozen=True)
class Rect:
    """Integer rectangle in image space (origin top-left, y grows downward)."""
    x: int
    y: int
    width: int
    height: int

    @property
    def max_x(self) -> int:
        return self.x + self.width

    @property
    def max_y(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains(self, other: Rect) -> bool:
        """True if other lies entirely inside this rect."""
        return (
            self.x <= other.x
            and self.y <= other.y
            and other.max_x <= self.max_x
            and other.max_y <= self.max_y
        )

    def offset_within(self, container: Rect) -> Rect:
        """This rect expressed relative to container's origin."""
        return Rect(self.x - container.x, self.y - container.y, self.width, self.height)


@dataclass(frozen=True)
class TileDescriptor:
    """
    One unit of tiled work.

    source_crop_rect is always tile_size x tile_size and pinned to the
    bottom-right corner of target_rect. target_rect is the region this
    tile owns in the composite.
    """
    index: int
    source_crop_rect: Rect
    target_rect: Rect

    @property
    def local_target_rect(self) -> Rect:
        """target_rect relative to the crop (still top-left origin)."""
        return self.target_rect.offset_within(self.source_crop_rect)


# ============================================================
# MODEL TENSORS
# ============================================================

@dataclass
class PlanarTensor:
    """
    Enhancement model output.

    Flat float32 array, channel-major: all R, then all G, then all B.
    Values are nominally in [0, 1] but may overshoot slightly.
    """
    data: NDArray[np.float32]
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise GeometryInvalid(
                f"Tensor dimensions must be positive, got {self.width}x{self.height}"
            )
        self.data = np.asarray(self.data, dtype=np.float32).reshape(-1)
        expected = 3 * self.width * self.height
        if self.data.size != expected:
            raise GeometryInvalid(
                f"Planar tensor holds {self.data.size} values, expected {expected} "
                f"for {self.width}x{self.height}"
            )

    @classmethod
    def from_array(cls, array: NDArray) -> PlanarTensor:
        """Build from a (3, H, W) or (1, 3, H, W) model output."""
        arr = np.asarray(array)
        while arr.ndim > 3 and arr.shape[0] == 1:
            arr = arr[0]
        if arr.ndim != 3 or arr.shape[0] != 3:
            raise GeometryInvalid(f"Expected a (3, H, W) tensor, got shape {arr.shape}")
        return cls(data=arr.reshape(-1), width=int(arr.shape[2]), height=int(arr.shape[1]))

    @property
    def channel_size(self) -> int:
        return self.width * self.height

    def planes(self) -> NDArray[np.float32]:
        """(3, H, W) view in R, G, B order."""
        return self.data.reshape(3, self.height, self.width)


# ============================================================
# SEGMENTATION
# ============================================================

@dataclass
class Detection:
    """
    A detected object on the enhanced preview frame.

    bounding_box_normalized is (x, y, width, height) in [0, 1],
    top-left origin, relative to the frame it was detected on.
    """
    bounding_box_normalized: Tuple[float, float, float, float]
    label: str
    confidence: float


# ============================================================
# COLLABORATOR SIGNATURES
# ============================================================

EnhanceFn = Callable[["PixelBuffer"], PlanarTensor]
SegmentationFn = Callable[["PixelBuffer"], List[Detection]]


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass
class TileFailure:
    """A tile that was skipped during compositing."""
    tile_index: int
    target_rect: Rect
    reason: str


@dataclass
class CompositeResult:
    """Result from the tile compositor."""
    image: PixelBuffer
    tiles_total: int
    failures: List[TileFailure] = field(default_factory=list)
    inference_time_ms: float = 0.0

    @property
    def tiles_composited(self) -> int:
        return self.tiles_total - len(self.failures)

    @property
    def is_complete(self) -> bool:
        return not self.failures


@dataclass
class FrameOutput:
    """
    Final output for one camera frame or captured photo.
    """
    frame_id: int
    image: Optional[PixelBuffer] = None
    detections: List[Detection] = field(default_factory=list)

    # Performance
    latency_ms: float = 0.0
    latency_budget_exceeded: bool = False
    tiles_skipped: int = 0

    # If processing fails
    success: bool = True
    error_message: Optional[str] = None


@dataclass
class DepthOutput:
    """Smoothed depth for the depth visualization collaborator."""
    frame_id: int
    depth_map: NDArray[np.float32]  # H x W, sensor orientation
    display_depth_map: NDArray[np.float32]  # rotated 90 degrees clockwise
    is_first_frame: bool = False
    latency_ms: float = 0.0
