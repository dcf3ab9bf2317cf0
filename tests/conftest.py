"""
Test Configuration
==================

Pytest fixtures and in-memory media doubles for motionext.
"""

from typing import List, Optional

import numpy as np
import pytest


class ListSource:
    """Frame source backed by a list, with the FrameSource read() surface."""

    def __init__(self, frames):
        self._frames = list(frames)
        self._idx = 0
        self.released = False

    def read(self):
        if self._idx >= len(self._frames):
            return False, None
        frame = self._frames[self._idx]
        self._idx += 1
        return True, frame

    def release(self):
        self.released = True


class ListSink:
    """Collects written frames in order."""

    def __init__(self, on_write=None):
        self.frames: List[np.ndarray] = []
        self._on_write = on_write

    def write(self, frame):
        self.frames.append(frame)
        if self._on_write is not None:
            self._on_write(len(self.frames))

    def release(self):
        pass


def solid(value, h: int = 24, w: int = 32) -> np.ndarray:
    return np.full((h, w, 3), value, dtype=np.uint8)


@pytest.fixture
def ramp_frames():
    """Ten solid frames with brightness 0, 20, ..., 180."""
    return [solid(i * 20) for i in range(10)]


@pytest.fixture
def random_frames():
    rng = np.random.default_rng(1234)
    return [rng.integers(0, 256, size=(24, 32, 3), dtype=np.uint8) for _ in range(12)]
