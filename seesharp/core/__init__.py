"""
Core contracts and errors for the enhancement core.

Processing order for a captured photo (NEVER REORDER):
1. Plan trailing-aligned tiles
2. Crop each tile through native (bottom-origin) space
3. Run the enhancement model per tile
4. Unpack planar output to BGRA
5. Extract the tile's trailing target region
6. Paste into the bottom-origin canvas
"""

from .errors import (
    SeeSharpError,
    ModelInvocationFailed,
    BufferAllocationFailed,
    GeometryInvalid,
)
from .contracts import (
    ConfidenceLevel,
    Rect,
    TileDescriptor,
    PlanarTensor,
    Detection,
    CompositeResult,
    FrameOutput,
    DepthOutput,
)
