from __future__ import annotations

import threading

import numpy as np
import pytest

from seesharp.core.contracts import ConfidenceLevel
from seesharp.core.errors import GeometryInvalid
from seesharp.depth.depth_filter import DepthTemporalFilter, FilterState


def _depth(value, shape=(4, 6)):
    return np.full(shape, value, dtype=np.float32)


def _confidence(level, shape=(4, 6)):
    return np.full(shape, int(level), dtype=np.uint8)


def test_first_frame_is_returned_raw():
    depth_filter = DepthTemporalFilter()
    raw = np.random.default_rng(0).uniform(0.2, 5.0, size=(4, 6)).astype(np.float32)

    out = depth_filter.update(raw, _confidence(ConfidenceLevel.LOW))
    assert np.array_equal(out, raw)
    assert depth_filter.state is FilterState.TRACKING
    assert depth_filter.frames_seen == 1


def test_default_alphas_average_two_frames():
    depth_filter = DepthTemporalFilter()
    depth_filter.update(_depth(2.0), _confidence(ConfidenceLevel.HIGH))
    out = depth_filter.update(_depth(3.0), _confidence(ConfidenceLevel.HIGH))
    assert np.allclose(out, 2.5)


@pytest.mark.parametrize("level", list(ConfidenceLevel))
def test_default_alphas_ignore_confidence(level):
    depth_filter = DepthTemporalFilter()
    depth_filter.update(_depth(2.0), _confidence(level))
    assert np.allclose(depth_filter.update(_depth(3.0), _confidence(level)), 2.5)


def test_asymmetric_alphas_pick_per_pixel_branch():
    depth_filter = DepthTemporalFilter(low_confidence_alpha=0.9, high_confidence_alpha=0.8)
    depth_filter.update(np.zeros((1, 3), dtype=np.float32), np.zeros((1, 3), dtype=np.uint8))

    confidence = np.array([[0, 1, 2]], dtype=np.uint8)
    out = depth_filter.update(np.full((1, 3), 10.0, dtype=np.float32), confidence)

    # LOW and MEDIUM keep 90% history, HIGH takes 80% of the new reading
    assert np.allclose(out, [[1.0, 1.0, 8.0]])


def test_confidence_is_not_smoothed():
    depth_filter = DepthTemporalFilter(low_confidence_alpha=1.0, high_confidence_alpha=1.0)
    depth_filter.update(_depth(1.0), _confidence(ConfidenceLevel.HIGH))

    # Low confidence with alpha 1 freezes the pixel, high confidence takes the reading outright
    assert np.allclose(depth_filter.update(_depth(4.0), _confidence(ConfidenceLevel.LOW)), 1.0)
    assert np.allclose(depth_filter.update(_depth(4.0), _confidence(ConfidenceLevel.HIGH)), 4.0)


def test_state_persists_across_frames():
    depth_filter = DepthTemporalFilter()
    depth_filter.update(_depth(0.0), _confidence(ConfidenceLevel.HIGH))
    depth_filter.update(_depth(4.0), _confidence(ConfidenceLevel.HIGH))
    out = depth_filter.update(_depth(4.0), _confidence(ConfidenceLevel.HIGH))
    assert np.allclose(out, 3.0)
    assert np.allclose(depth_filter.previous_depth, 3.0)
    assert depth_filter.frames_seen == 3


def test_returned_frame_is_independent_of_state():
    depth_filter = DepthTemporalFilter()
    depth_filter.update(_depth(1.0), _confidence(ConfidenceLevel.HIGH))
    out = depth_filter.update(_depth(3.0), _confidence(ConfidenceLevel.HIGH))
    out[...] = 100.0
    assert np.allclose(depth_filter.previous_depth, 2.0)


def test_shape_mismatch_between_depth_and_confidence():
    depth_filter = DepthTemporalFilter()
    with pytest.raises(GeometryInvalid):
        depth_filter.update(_depth(1.0), _confidence(ConfidenceLevel.HIGH, shape=(4, 5)))


def test_shape_change_requires_reset():
    depth_filter = DepthTemporalFilter()
    depth_filter.update(_depth(1.0), _confidence(ConfidenceLevel.HIGH))
    with pytest.raises(GeometryInvalid):
        depth_filter.update(_depth(1.0, (8, 8)), _confidence(ConfidenceLevel.HIGH, (8, 8)))

    depth_filter.reset()
    out = depth_filter.update(_depth(7.0, (8, 8)), _confidence(ConfidenceLevel.HIGH, (8, 8)))
    assert np.allclose(out, 7.0)


def test_reset_returns_to_uninitialized():
    depth_filter = DepthTemporalFilter()
    depth_filter.update(_depth(1.0), _confidence(ConfidenceLevel.HIGH))
    depth_filter.reset()
    assert depth_filter.state is FilterState.UNINITIALIZED
    assert depth_filter.previous_depth is None
    assert depth_filter.frames_seen == 0


def test_rejects_invalid_alpha():
    with pytest.raises(ValueError):
        DepthTemporalFilter(low_confidence_alpha=1.5)


def test_concurrent_updates_commit_every_frame():
    depth_filter = DepthTemporalFilter()
    depth_filter.update(_depth(0.0), _confidence(ConfidenceLevel.HIGH))

    def feed():
        for _ in range(50):
            depth_filter.update(_depth(0.0), _confidence(ConfidenceLevel.HIGH))

    threads = [threading.Thread(target=feed) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert depth_filter.frames_seen == 201


def test_low_confidence_pixel_with_default_alpha():
    depth_filter = DepthTemporalFilter()
    depth_filter.update(_depth(2.0), _confidence(ConfidenceLevel.LOW))
    out = depth_filter.update(_depth(4.0), _confidence(ConfidenceLevel.LOW))
    assert np.allclose(out, 3.0)


def test_step_reports_first_frame():
    depth_filter = DepthTemporalFilter()
    _, first = depth_filter.step(_depth(1.0), _confidence(ConfidenceLevel.HIGH))
    smoothed, second = depth_filter.step(_depth(3.0), _confidence(ConfidenceLevel.HIGH))
    assert first is True and second is False
    assert np.allclose(smoothed, 2.0)

    depth_filter.reset()
    _, after_reset = depth_filter.step(_depth(1.0), _confidence(ConfidenceLevel.HIGH))
    assert after_reset is True


def test_concurrent_first_frames_flag_once():
    depth_filter = DepthTemporalFilter()
    barrier = threading.Barrier(6)
    flags = []

    def feed():
        barrier.wait()
        flags.append(depth_filter.step(_depth(1.0), _confidence(ConfidenceLevel.HIGH))[1])

    threads = [threading.Thread(target=feed) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert flags.count(True) == 1
