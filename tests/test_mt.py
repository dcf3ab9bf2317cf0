import threading

import numpy as np
import pytest

from motionext import DimensionMismatch, ExtractParams, MotionExtractor, run
from motionext.mt import run_parallel

from conftest import ListSink, ListSource


def _sequential(frames, params):
    sink = ListSink()
    run(ListSource(frames), sink, params)
    return sink.frames

@pytest.mark.parametrize("delay,overlay", [(0, False), (1, False), (4, True)])
def test_parallel_matches_sequential(random_frames, delay, overlay):
    params = ExtractParams(delay=delay, overlay=overlay)
    expected = _sequential(random_frames, params)

    sink = ListSink()
    stats = run(ListSource(random_frames), sink, params, workers=3, max_futures=2)
    assert stats.frames_read == len(random_frames)
    assert stats.frames_written == len(expected)
    assert len(sink.frames) == len(expected)
    for got, want in zip(sink.frames, expected):
        assert np.array_equal(got, want)

def test_parallel_single_future_in_flight(ramp_frames):
    params = ExtractParams(delay=2)
    expected = _sequential(ramp_frames, params)
    sink = ListSink()
    run_parallel(MotionExtractor(params), ListSource(ramp_frames), sink, workers=2, max_futures=1)
    assert len(sink.frames) == len(expected)
    assert all(np.array_equal(a, b) for a, b in zip(sink.frames, expected))

def test_parallel_stop_event(ramp_frames):
    stop = threading.Event()
    stop.set()
    sink = ListSink()
    stats = run_parallel(MotionExtractor(ExtractParams(delay=1)), ListSource(ramp_frames), sink,
                         workers=2, stop=stop)
    assert stats.cancelled
    assert stats.frames_read == 0
    assert sink.frames == []

def test_parallel_reraises_worker_errors():
    frames = [np.zeros((8, 8, 3), np.uint8), np.zeros((8, 10, 3), np.uint8)]
    with pytest.raises(DimensionMismatch):
        run_parallel(MotionExtractor(ExtractParams(delay=1)), ListSource(frames), ListSink(), workers=2)

def test_parallel_rejects_bad_pool_size(ramp_frames):
    with pytest.raises(ValueError):
        run_parallel(MotionExtractor(), ListSource(ramp_frames), ListSink(), workers=0)
