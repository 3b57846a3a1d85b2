"""
YOLO object detection on the enhanced preview frame.

Purely additive: detections are handed to the display collaborator and never
alter the enhanced image.

Requirements:
    - ultralytics (imported lazily)
"""

from __future__ import annotations

import time
from typing import Any, List, Optional
import numpy as np
from loguru import logger

from seesharp.capture.pixel_buffer import PixelBuffer
from seesharp.core.contracts import Detection


def _to_numpy(values: Any) -> np.ndarray:
    """Accept torch tensors or array-likes."""
    if hasattr(values, "cpu"):
        values = values.cpu()
    if hasattr(values, "numpy"):
        return values.numpy()
    return np.asarray(values)


class YoloDetector:
    """
    Ultralytics YOLO detector usable as a segmentation collaborator.

    Usage:
        detector = YoloDetector("yolov8n.pt")
        detections = detector(enhanced_buffer)
    """

    def __init__(
        self,
        model_path: str = "yolov8n.pt",
        min_confidence: float = 0.25,
        device: Optional[str] = None,
        model: Optional[Any] = None,
    ):
        """
        Initialize detector.

        Args:
            model_path: YOLO weights (.pt, .onnx or .engine)
            min_confidence: Minimum detection confidence
            device: Inference device, auto-selected by ultralytics if None
            model: Preloaded model (skips loading model_path)
        """
        self.min_confidence = min_confidence
        self.device = device

        if model is None:
            from ultralytics import YOLO
            logger.info(f"Loading YOLO detector ({model_path})")
            model = YOLO(model_path)
        self.model = model

        self._inference_times: List[float] = []

    def __call__(self, buffer: PixelBuffer) -> List[Detection]:
        """
        Detect objects on a BGRA buffer.

        Returns:
            Detections with normalized (x, y, width, height) boxes, top-left origin
        """
        start_time = time.perf_counter()
        frame = buffer.bgr()

        kwargs = {"verbose": False, "conf": self.min_confidence}
        if self.device is not None:
            kwargs["device"] = self.device
        results = self.model(frame, **kwargs)

        detections: List[Detection] = []
        for result in results:
            boxes = result.boxes
            if boxes is None or len(boxes) == 0:
                continue
            names = result.names
            xyxyn = _to_numpy(boxes.xyxyn).reshape(-1, 4)
            confidences = _to_numpy(boxes.conf).reshape(-1)
            classes = _to_numpy(boxes.cls).reshape(-1)

            for (x1, y1, x2, y2), conf, cls in zip(xyxyn, confidences, classes):
                if conf < self.min_confidence:
                    continue
                detections.append(
                    Detection(
                        bounding_box_normalized=(
                            float(x1),
                            float(y1),
                            float(x2 - x1),
                            float(y2 - y1),
                        ),
                        label=str(names.get(int(cls), "unknown")),
                        confidence=float(conf),
                    )
                )

        self._record_inference_time((time.perf_counter() - start_time) * 1000)
        return detections

    def _record_inference_time(self, time_ms: float):
        """Record inference time for monitoring."""
        self._inference_times.append(time_ms)
        if len(self._inference_times) > 100:
            self._inference_times.pop(0)

    @property
    def average_inference_time_ms(self) -> float:
        """Get average inference time."""
        if not self._inference_times:
            return 0.0
        return sum(self._inference_times) / len(self._inference_times)
