"""
Tile Compositor.

Reconstructs a full-resolution enhanced image from a fixed-size model:

1. Plan trailing-aligned tiles
2. Crop each tile through native space (bottom-left origin)
3. Run the enhancement model on the 256x256 crop
4. Unpack the planar output into BGRA
5. Keep only the tile's target region (the overlap is discarded, never blended)
6. Paste into a bottom-origin canvas

Failed tiles are skipped and leave a transparent hole; the frame continues.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from seesharp.capture.pixel_buffer import PixelBuffer
from seesharp.core.contracts import (
    CompositeResult,
    EnhanceFn,
    PlanarTensor,
    TileDescriptor,
    TileFailure,
)
from seesharp.core.errors import (
    BufferAllocationFailed,
    GeometryInvalid,
    ModelInvocationFailed,
)
from seesharp.enhancement.channel_packing import unpack
from seesharp.enhancement.enhancers import to_model_tensor
from seesharp.geometry.coordinates import NativeCanvas, flip_rect, sample_native
from seesharp.geometry.tile_planner import DEFAULT_TILE_SIZE, padded_extent, plan_tiles


TileOutcome = Tuple[TileDescriptor, Optional[NDArray[np.uint8]], Optional[str]]


class TileCompositor:
    """
    Seam-free tiled enhancement.

    Guarantees:
    - Every output pixel is written by exactly one tile
    - Serial and parallel runs produce identical bytes
    - A failing tile never aborts the frame
    """

    def __init__(
        self,
        tile_size: int = DEFAULT_TILE_SIZE,
        max_workers: int = 1,
    ):
        """
        Initialize compositor.

        Args:
            tile_size: Fixed model input edge length
            max_workers: Tiles enhanced concurrently (1 = serial)
        """
        if tile_size <= 0:
            raise GeometryInvalid(f"Tile size must be positive, got {tile_size}")
        self.tile_size = tile_size
        self.max_workers = max(1, int(max_workers))

    def composite(self, source: PixelBuffer, model: EnhanceFn) -> PixelBuffer:
        """Enhance source tile by tile and return the composited image."""
        return self.render(source, model).image

    def render(self, source: PixelBuffer, model: EnhanceFn) -> CompositeResult:
        """
        Enhance source tile by tile.

        Returns:
            CompositeResult with the image and the skipped tiles

        Raises:
            BufferAllocationFailed: If the output canvas cannot be created
            GeometryInvalid: On invalid source dimensions
        """
        start_time = time.perf_counter()

        tiles = plan_tiles(source.width, source.height, self.tile_size)
        padded = source.pad_to(*padded_extent(source.width, source.height, self.tile_size))

        try:
            canvas = NativeCanvas(source.width, source.height)
        except MemoryError as e:
            raise BufferAllocationFailed(
                f"Could not allocate {source.width}x{source.height} canvas"
            ) from e

        failures: List[TileFailure] = []
        # Pasting is serial and in plan order, whatever the worker count
        for tile, region, reason in self._run_tiles(padded, tiles, model):
            if region is None:
                failures.append(TileFailure(tile.index, tile.target_rect, reason or "unknown"))
                continue
            canvas.paste(region, flip_rect(tile.target_rect, source.height))

        image = PixelBuffer.from_bgra(canvas.image_rows())
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        if failures:
            logger.warning(
                f"Composite {source.width}x{source.height}: "
                f"{len(failures)}/{len(tiles)} tiles skipped"
            )
        logger.debug(
            f"Composited {len(tiles) - len(failures)} tiles in {elapsed_ms:.1f}ms"
        )

        return CompositeResult(
            image=image,
            tiles_total=len(tiles),
            failures=failures,
            inference_time_ms=elapsed_ms,
        )

    def _run_tiles(
        self,
        padded: PixelBuffer,
        tiles: List[TileDescriptor],
        model: EnhanceFn,
    ) -> List[TileOutcome]:
        """Enhance all tiles, each into a private buffer."""
        if self.max_workers == 1 or len(tiles) == 1:
            return [self._run_tile(padded, tile, model) for tile in tiles]

        workers = min(self.max_workers, len(tiles))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tile") as pool:
            return list(pool.map(lambda tile: self._run_tile(padded, tile, model), tiles))

    def _run_tile(
        self,
        padded: PixelBuffer,
        tile: TileDescriptor,
        model: EnhanceFn,
    ) -> TileOutcome:
        """Enhance one tile, absorbing per-tile failures."""
        try:
            region = self.enhance_tile(padded, tile, model)
        except ModelInvocationFailed as e:
            logger.warning(f"Tile {tile.index} at {tile.target_rect} skipped: {e}")
            return tile, None, str(e)

        target = tile.target_rect
        logger.debug(f"Tile ({target.x}, {target.y}) - size: {target.width}x{target.height}")
        return tile, region, None

    def enhance_tile(
        self,
        padded: PixelBuffer,
        tile: TileDescriptor,
        model: EnhanceFn,
    ) -> NDArray[np.uint8]:
        """
        Produce the enhanced target region of one tile.

        Args:
            padded: Source buffer, already padded to at least one tile
            tile: Tile geometry (image space)
            model: Enhancement collaborator

        Returns:
            (target.height, target.width, 4) BGRA region, top row first

        Raises:
            ModelInvocationFailed: If cropping or the model call fails
        """
        size = self.tile_size

        # 1) Crop through native space
        native_crop = flip_rect(tile.source_crop_rect, padded.height)
        try:
            crop = PixelBuffer.from_bgra(sample_native(padded.pixels, native_crop)).freeze()
        except BufferAllocationFailed as e:
            raise ModelInvocationFailed(f"Tile crop failed: {e}", tile.index) from e

        # 2) Model call
        try:
            output = model(crop)
        except Exception as e:
            raise ModelInvocationFailed(f"Model call failed: {e}", tile.index) from e

        tensor = self._as_tensor(output, tile.index)

        # 3) Planar -> BGRA
        enhanced = unpack(tensor, size, size)

        # 4) Trailing target region, again through native space
        native_local = flip_rect(tile.local_target_rect, size)
        return np.ascontiguousarray(sample_native(enhanced.pixels, native_local))

    def _as_tensor(self, output, tile_index: int) -> PlanarTensor:
        """Validate the model output against the fixed tile contract."""
        try:
            return to_model_tensor(output, self.tile_size)
        except (GeometryInvalid, ValueError, TypeError) as e:
            raise ModelInvocationFailed(f"Unusable model output: {e}", tile_index) from e
