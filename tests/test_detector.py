from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest

from seesharp.segmentation.detector import YoloDetector


class FakeBoxes:
    def __init__(self, xyxyn, conf, cls):
        self.xyxyn = np.asarray(xyxyn, dtype=np.float32)
        self.conf = np.asarray(conf, dtype=np.float32)
        self.cls = np.asarray(cls, dtype=np.float32)

    def __len__(self):
        return len(self.conf)


class FakeYolo:
    """Stands in for an ultralytics model: records calls, returns canned results."""

    def __init__(self, results):
        self.results = results
        self.calls = []

    def __call__(self, frame, **kwargs):
        self.calls.append((frame, kwargs))
        return self.results


def _result(boxes, names=None):
    return SimpleNamespace(boxes=boxes, names=names or {0: "person", 2: "car"})


def test_detections_use_normalized_xywh(random_buffer):
    boxes = FakeBoxes([[0.1, 0.2, 0.5, 0.6]], [0.9], [2])
    detector = YoloDetector(model=FakeYolo([_result(boxes)]))

    detections = detector(random_buffer(64, 48))
    assert len(detections) == 1
    det = detections[0]
    assert det.label == "car"
    assert det.confidence == pytest.approx(0.9)
    assert det.bounding_box_normalized == pytest.approx((0.1, 0.2, 0.4, 0.4))


def test_model_receives_bgr_frame(random_buffer):
    model = FakeYolo([])
    buffer = random_buffer(20, 10)
    YoloDetector(model=model, min_confidence=0.4, device="cpu")(buffer)

    frame, kwargs = model.calls[0]
    assert frame.shape == (10, 20, 3)
    assert np.array_equal(frame, buffer.pixels[..., :3])
    assert kwargs == {"verbose": False, "conf": 0.4, "device": "cpu"}


def test_low_confidence_and_empty_results_are_dropped(random_buffer):
    results = [
        _result(None),
        _result(FakeBoxes(np.zeros((0, 4)), [], [])),
        _result(FakeBoxes([[0, 0, 1, 1], [0, 0, 0.5, 0.5]], [0.1, 0.7], [0, 5])),
    ]
    detections = YoloDetector(model=FakeYolo(results), min_confidence=0.25)(random_buffer(8, 8))
    assert [d.label for d in detections] == ["unknown"]


def test_tracks_inference_time(random_buffer):
    detector = YoloDetector(model=FakeYolo([]))
    assert detector.average_inference_time_ms == 0.0
    detector(random_buffer(8, 8))
    assert detector.average_inference_time_ms >= 0.0
    assert len(detector._inference_times) == 1
