"""
Pipeline Orchestrator.

Three independent paths:

Preview (every camera frame):
1. Resize the frame to the model input size
2. Enhance once, unpack to BGRA
3. Optionally detect objects on the enhanced frame

Photo (on capture):
1. Enhance at full resolution through the tile compositor

Depth (every sensor frame, while depth sensing is active):
1. Confidence-gated temporal smoothing
2. Rotate for portrait display

Failures are reported in the outputs; nothing here retries.
"""

from __future__ import annotations

import sys
import time
from collections import deque
from typing import Deque, List, Optional
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from seesharp.capture.pixel_buffer import PixelBuffer, resize_buffer, rotate_clockwise
from seesharp.config import Config
from seesharp.core.contracts import (
    Detection,
    DepthOutput,
    EnhanceFn,
    FrameOutput,
    PlanarTensor,
    SegmentationFn,
)
from seesharp.core.errors import (
    BufferAllocationFailed,
    GeometryInvalid,
    ModelInvocationFailed,
)
from seesharp.depth.depth_filter import DepthTemporalFilter
from seesharp.enhancement.channel_packing import unpack
from seesharp.enhancement.enhancers import get_enhancer, to_model_tensor
from seesharp.enhancement.tile_compositor import TileCompositor
from seesharp.log import remove_logging, setup_logging


class FpsMeter:
    """Frames per second over a sliding window of frame timestamps."""

    def __init__(self, window_seconds: float = 1.5):
        self.window_seconds = window_seconds
        self._times: Deque[float] = deque()
        self._fps = 0.0

    def tick(self, timestamp_s: float) -> float:
        """Record a frame timestamp (seconds) and return the current FPS."""
        self._times.append(timestamp_s)
        cutoff = timestamp_s - self.window_seconds
        while len(self._times) > 1 and self._times[0] < cutoff:
            self._times.popleft()

        if len(self._times) >= 2:
            duration = max(self._times[-1] - self._times[0], sys.float_info.epsilon)
            self._fps = (len(self._times) - 1) / duration
        return self._fps

    @property
    def fps(self) -> float:
        return self._fps

    def reset(self):
        self._times.clear()
        self._fps = 0.0


class EnhancementPipeline:
    """
    Main pipeline orchestrator.

    Guarantees:
    - Preview and photo paths share the enhancer, never buffers
    - Depth frames are smoothed strictly in arrival order
    - Model and allocation failures are reported, never raised
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        enhancer: Optional[EnhanceFn] = None,
        detector: Optional[SegmentationFn] = None,
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            config: Pipeline configuration
            enhancer: Enhancement model; built from config.enhancer if None
            detector: Segmentation collaborator; built on demand if None
        """
        self.config = config or Config()

        self._enhancer = enhancer
        self._detector = detector

        self._compositor = TileCompositor(
            tile_size=self.config.tile_size,
            max_workers=self.config.max_workers,
        )
        self._depth_filter = DepthTemporalFilter(
            low_confidence_alpha=self.config.low_confidence_alpha,
            high_confidence_alpha=self.config.high_confidence_alpha,
            low_confidence_ceiling=self.config.low_confidence_ceiling,
        )
        self._fps_meter = FpsMeter(self.config.fps_window_seconds)

        # Performance tracking
        self._frame_latencies: List[float] = []

        self._frame_counter = 0
        self._depth_counter = 0

        # Sinks installed by start(), removed by stop()
        self._log_handlers: List[int] = []

        logger.info("Enhancement pipeline initialized")

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    def start(self) -> bool:
        """
        Install the configured log sinks and build the model collaborators
        that were not injected.

        Returns:
            True if the enhancer is ready
        """
        if not self._log_handlers:
            self._log_handlers = setup_logging(self.config.log_level, self.config.log_file)

        if self._enhancer is None:
            try:
                self._enhancer = get_enhancer(self.config.enhancer, self.config)
            except Exception as e:
                logger.error(f"Failed to load enhancer '{self.config.enhancer}': {e}")
                return False

        if self.config.use_object_segmentation and self._detector is None:
            self._detector = self._load_detector()

        logger.info("Pipeline started")
        return True

    def stop(self):
        """Stop the pipeline and drop temporal state."""
        self.stop_depth()
        self._fps_meter.reset()
        logger.info("Pipeline stopped")
        remove_logging(self._log_handlers)
        self._log_handlers = []

    def _load_detector(self) -> Optional[SegmentationFn]:
        try:
            from seesharp.segmentation.detector import YoloDetector
            return YoloDetector(self.config.detector_model_path, device=self.config.device)
        except Exception as e:
            logger.warning(f"Object segmentation unavailable: {e}")
            return None

    def set_object_segmentation(self, enabled: bool):
        """Toggle detection on preview frames."""
        self.config.use_object_segmentation = enabled
        if enabled and self._detector is None:
            self._detector = self._load_detector()
        logger.info(f"Object segmentation {'enabled' if enabled else 'disabled'}")

    def set_lidar(self, enabled: bool):
        """Toggle depth sensing; switching it off drops the depth track."""
        self.config.use_lidar = enabled
        if not enabled:
            self.stop_depth()
        logger.info(f"Depth sensing {'enabled' if enabled else 'disabled'}")

    @property
    def enhancer(self) -> EnhanceFn:
        if self._enhancer is None and not self.start():
            raise ModelInvocationFailed(f"Enhancer '{self.config.enhancer}' unavailable")
        return self._enhancer

    # ------------------------------------------------------------
    # Preview path
    # ------------------------------------------------------------

    def process_frame(
        self,
        frame: PixelBuffer,
        timestamp_s: Optional[float] = None,
    ) -> FrameOutput:
        """
        Enhance one live camera frame at the model's input size.

        Args:
            frame: Camera frame (any size)
            timestamp_s: Presentation timestamp, used for FPS

        Returns:
            FrameOutput with a tile_size x tile_size enhanced image
        """
        start_time = time.perf_counter()
        frame_id = self._frame_counter
        self._frame_counter += 1

        self._fps_meter.tick(time.monotonic() if timestamp_s is None else timestamp_s)

        size = self.config.tile_size
        try:
            resized = resize_buffer(frame, size, size).freeze()
            tensor = self._invoke_model(resized)
            enhanced = unpack(tensor, size, size).freeze()
        except (ModelInvocationFailed, BufferAllocationFailed) as e:
            logger.error(f"Frame {frame_id} enhancement failed: {e}")
            return self._failed_output(frame_id, start_time, str(e))

        detections = self._detect(enhanced)

        latency_ms = (time.perf_counter() - start_time) * 1000
        exceeded = self._track_latency(latency_ms)

        return FrameOutput(
            frame_id=frame_id,
            image=enhanced,
            detections=detections,
            latency_ms=latency_ms,
            latency_budget_exceeded=exceeded,
        )

    def _invoke_model(self, buffer: PixelBuffer) -> PlanarTensor:
        """Run the enhancer on one model-sized buffer."""
        try:
            output = self.enhancer(buffer)
        except ModelInvocationFailed:
            raise
        except Exception as e:
            raise ModelInvocationFailed(f"Model call failed: {e}") from e

        try:
            return to_model_tensor(output, self.config.tile_size)
        except (GeometryInvalid, ValueError, TypeError) as e:
            raise ModelInvocationFailed(f"Unusable model output: {e}") from e

    def _detect(self, enhanced: PixelBuffer) -> List[Detection]:
        """Run the optional detector; failures yield no detections."""
        if not self.config.use_object_segmentation or self._detector is None:
            return []
        try:
            return list(self._detector(enhanced))
        except Exception as e:
            logger.error(f"Object segmentation failed: {e}")
            return []

    # ------------------------------------------------------------
    # Photo path
    # ------------------------------------------------------------

    def capture_photo(self, photo: PixelBuffer) -> FrameOutput:
        """
        Enhance a captured photo at full resolution.

        Skipped tiles are reported in tiles_skipped; the image is still returned.
        """
        start_time = time.perf_counter()
        frame_id = self._frame_counter
        self._frame_counter += 1

        try:
            result = self._compositor.render(photo, self.enhancer)
        except (BufferAllocationFailed, ModelInvocationFailed) as e:
            logger.error(f"Photo {frame_id} enhancement aborted: {e}")
            return self._failed_output(frame_id, start_time, str(e))

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Photo {photo.width}x{photo.height} enhanced with "
            f"{result.tiles_composited}/{result.tiles_total} tiles in {latency_ms:.1f}ms"
        )

        return FrameOutput(
            frame_id=frame_id,
            image=result.image.freeze(),
            latency_ms=latency_ms,
            tiles_skipped=len(result.failures),
        )

    # ------------------------------------------------------------
    # Depth path
    # ------------------------------------------------------------

    def process_depth(
        self,
        depth: NDArray[np.float32],
        confidence: NDArray[np.uint8],
    ) -> Optional[DepthOutput]:
        """
        Smooth one depth frame.

        Returns:
            DepthOutput, or None while depth sensing (use_lidar) is off

        Raises:
            GeometryInvalid: If depth and confidence shapes disagree
        """
        if not self.config.use_lidar:
            return None

        start_time = time.perf_counter()
        frame_id = self._depth_counter
        self._depth_counter += 1

        smoothed, is_first = self._depth_filter.step(depth, confidence)

        return DepthOutput(
            frame_id=frame_id,
            depth_map=smoothed,
            display_depth_map=rotate_clockwise(smoothed),
            is_first_frame=is_first,
            latency_ms=(time.perf_counter() - start_time) * 1000,
        )

    def stop_depth(self):
        """Depth sensing stopped: the next frame starts a new track."""
        self._depth_filter.reset()
        self._depth_counter = 0

    # ------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------

    def _track_latency(self, latency_ms: float) -> bool:
        self._frame_latencies.append(latency_ms)
        if len(self._frame_latencies) > 100:
            self._frame_latencies.pop(0)

        exceeded = latency_ms > self.config.frame_budget_ms
        if exceeded:
            logger.warning(
                f"Latency budget exceeded: {latency_ms:.1f}ms > "
                f"{self.config.frame_budget_ms}ms"
            )
        return exceeded

    def _failed_output(self, frame_id: int, start_time: float, message: str) -> FrameOutput:
        return FrameOutput(
            frame_id=frame_id,
            latency_ms=(time.perf_counter() - start_time) * 1000,
            success=False,
            error_message=message,
        )

    @property
    def fps(self) -> float:
        return self._fps_meter.fps

    @property
    def average_latency_ms(self) -> float:
        if not self._frame_latencies:
            return 0.0
        return sum(self._frame_latencies) / len(self._frame_latencies)

    @property
    def depth_filter(self) -> DepthTemporalFilter:
        return self._depth_filter
