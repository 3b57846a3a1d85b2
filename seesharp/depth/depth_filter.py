"""
Depth Temporal Filter.

Confidence-gated exponential moving average over a per-pixel depth stream:
- Low confidence: weight toward history (stability)
- Adequate confidence: weight toward the new reading (responsiveness)

The filter never smooths confidence, never resets on confidence dips and
performs no outlier rejection.
"""

from __future__ import annotations

import threading
from enum import Enum, auto
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from seesharp.core.contracts import ConfidenceLevel
from seesharp.core.errors import GeometryInvalid


class FilterState(Enum):
    """Lifecycle of the depth filter."""
    UNINITIALIZED = auto()
    TRACKING = auto()


class DepthTemporalFilter:
    """
    Per-pixel temporal smoothing of sensor depth.

    For each pixel i on every frame after the first:
        confidence[i] <= ceiling:
            smoothed = a_low * previous + (1 - a_low) * current
        otherwise:
            smoothed = (1 - a_high) * previous + a_high * current

    With both alphas at 0.5 the two branches coincide; they are kept
    separate so each tier can be tuned on its own.
    """

    def __init__(
        self,
        low_confidence_alpha: float = 0.5,
        high_confidence_alpha: float = 0.5,
        low_confidence_ceiling: int = int(ConfidenceLevel.MEDIUM),
    ):
        """
        Initialize depth filter.

        Args:
            low_confidence_alpha: History weight for low-confidence pixels
            high_confidence_alpha: Reading weight for adequately confident pixels
            low_confidence_ceiling: Highest confidence code treated as low
        """
        for name, value in (
            ("low_confidence_alpha", low_confidence_alpha),
            ("high_confidence_alpha", high_confidence_alpha),
        ):
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")

        self.low_confidence_alpha = low_confidence_alpha
        self.high_confidence_alpha = high_confidence_alpha
        self.low_confidence_ceiling = low_confidence_ceiling

        # Temporal state, mutated in place on every frame
        self._previous_depth: Optional[NDArray[np.float32]] = None
        self._frames_seen: int = 0

        # Frame N must commit before frame N+1 reads
        self._lock = threading.Lock()

    @property
    def state(self) -> FilterState:
        if self._previous_depth is None:
            return FilterState.UNINITIALIZED
        return FilterState.TRACKING

    @property
    def frames_seen(self) -> int:
        return self._frames_seen

    @property
    def previous_depth(self) -> Optional[NDArray[np.float32]]:
        """Copy of the tracked depth, or None before the first frame."""
        with self._lock:
            if self._previous_depth is None:
                return None
            return self._previous_depth.copy()

    def update(
        self,
        depth: NDArray[np.float32],
        confidence: NDArray[np.uint8],
    ) -> NDArray[np.float32]:
        """Feed one depth/confidence pair and return the smoothed depth."""
        smoothed, _ = self.step(depth, confidence)
        return smoothed

    def step(
        self,
        depth: NDArray[np.float32],
        confidence: NDArray[np.uint8],
    ) -> Tuple[NDArray[np.float32], bool]:
        """
        Feed one depth/confidence pair.

        Args:
            depth: H x W depth in meters
            confidence: H x W ordinal confidence codes

        Returns:
            (smoothed depth, is_first_frame). The first frame of a track is
            returned raw and unmodified; the flag is decided under the lock.

        Raises:
            GeometryInvalid: If shapes disagree
        """
        depth = np.asarray(depth, dtype=np.float32)
        confidence = np.asarray(confidence)

        if depth.ndim != 2:
            raise GeometryInvalid(f"Depth frame must be 2-D, got shape {depth.shape}")
        if confidence.shape != depth.shape:
            raise GeometryInvalid(
                f"Confidence shape {confidence.shape} does not match depth {depth.shape}"
            )

        with self._lock:
            if self._previous_depth is None:
                self._previous_depth = depth.copy()
                self._frames_seen = 1
                logger.debug(f"Depth filter tracking {depth.shape[1]}x{depth.shape[0]}")
                return depth.copy(), True

            previous = self._previous_depth
            if previous.shape != depth.shape:
                raise GeometryInvalid(
                    f"Depth frame {depth.shape} does not match tracked {previous.shape}; "
                    f"reset the filter when the sensor format changes"
                )

            one = np.float32(1.0)
            a_low = np.float32(self.low_confidence_alpha)
            a_high = np.float32(self.high_confidence_alpha)

            low_confidence = confidence <= self.low_confidence_ceiling
            history_weighted = a_low * previous + (one - a_low) * depth
            reading_weighted = (one - a_high) * previous + a_high * depth

            np.copyto(previous, np.where(low_confidence, history_weighted, reading_weighted))
            self._frames_seen += 1
            return previous.copy(), False

    def reset(self):
        """Discard temporal state (sensing stopped)."""
        with self._lock:
            self._previous_depth = None
            self._frames_seen = 0
        logger.debug("Depth filter temporal state reset")
