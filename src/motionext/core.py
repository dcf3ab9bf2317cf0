from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple, Deque
import collections
import logging
import cv2
import numpy as np

from .errors import DimensionMismatch, Overflow, Underflow

logger = logging.getLogger(__name__)

# slight brightening of the diff image
DEFAULT_GAMMA = 1 / 1.1
# a little above the 127/128 mid-gray of a still pixel
MASK_THRESHOLD = 129
MASK_BLUR: Tuple[int, int] = (3, 3)

@dataclass
class ExtractParams:
    """
    Parameters for delayed-frame motion extraction.

    delay is the number of frames between the current frame and its
    reference (0 compares every frame against the first one). overlay
    paints the motion mask over the original frame instead of emitting the
    tone-mapped difference image. gamma is the exponent of the tone curve
    used when overlay is off.
    """
    delay: int = 1
    overlay: bool = False
    gamma: float = DEFAULT_GAMMA

class ToneCurve:
    """
    Precomputed 256-entry gamma table.

    Built once per run and passed to whoever needs it; applying it to a
    frame is a single table lookup per channel value.
    """
    def __init__(self, gamma: float = DEFAULT_GAMMA) -> None:
        if not gamma > 0:
            raise ValueError(f"gamma must be positive, got {gamma}")
        self.gamma = float(gamma)
        levels = np.arange(256, dtype=np.float64) / 255.0
        table = np.clip(np.rint(np.power(levels, self.gamma) * 255.0), 0, 255)
        self._table = table.astype(np.uint8)

    @classmethod
    def build(cls, gamma: float) -> "ToneCurve":
        return cls(gamma)

    @property
    def table(self) -> np.ndarray:
        return self._table.copy()

    def __getitem__(self, level: int) -> int:
        return int(self._table[level])

    def apply(self, frame: np.ndarray) -> np.ndarray:
        return cv2.LUT(frame, self._table)

def _check_same_layout(a: np.ndarray, b: np.ndarray) -> None:
    if a.shape != b.shape or a.dtype != b.dtype:
        raise DimensionMismatch((a.shape, str(a.dtype)), (b.shape, str(b.dtype)))

def compare_frames(current: np.ndarray, reference: np.ndarray) -> np.ndarray:
    """
    Blend the current frame with the inverted reference frame.

    Still pixels come out mid-gray; the further a pixel moved away from its
    reference value the further it leaves mid-gray, in the direction of the
    signed difference.
    """
    _check_same_layout(current, reference)
    return cv2.addWeighted(current, 0.5, cv2.bitwise_not(reference), 0.5, 0)

def overlay_motion(original: np.ndarray, diff_frame: np.ndarray) -> np.ndarray:
    """
    Turn a difference frame into a soft motion mask and OR it onto the
    original frame, so moving regions show up whitened.
    """
    _check_same_layout(original, diff_frame)
    gray = cv2.cvtColor(diff_frame, cv2.COLOR_BGR2GRAY)
    # THRESH_BINARY keeps values strictly above the threshold
    _, mask = cv2.threshold(gray, MASK_THRESHOLD - 1, 255, cv2.THRESH_BINARY)
    mask = cv2.blur(mask, MASK_BLUR)
    mask = cv2.cvtColor(mask, cv2.COLOR_GRAY2BGR)
    return cv2.bitwise_or(original, mask)

class DelayBuffer:
    """
    Bounded FIFO of frames used as delayed references.

    The buffer is primed once it holds ``capacity`` frames. From then on
    every incoming frame is paired with a pop of the oldest one, so the size
    stays at ``capacity`` between cycles.
    """
    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._frames: Deque[np.ndarray] = collections.deque()

    def __len__(self) -> int:
        return len(self._frames)

    def is_primed(self) -> bool:
        return len(self._frames) == self.capacity

    def push(self, frame: np.ndarray) -> None:
        if len(self._frames) >= self.capacity:
            raise Overflow(f"delay buffer already holds {self.capacity} frame(s)")
        self._frames.append(frame)

    def pop_oldest(self) -> np.ndarray:
        if not self.is_primed():
            raise Underflow(
                f"delay buffer holds {len(self._frames)} of {self.capacity} frame(s)"
            )
        return self._frames.popleft()

    def clear(self) -> None:
        self._frames.clear()

class MotionExtractor:
    """
    Per-frame motion extraction against a delayed reference.

    Feed frames in order to :meth:`process`. While the delay buffer is
    priming it returns ``None``; afterwards every call returns one output
    frame. With ``delay == 0`` the first frame becomes a fixed reference for
    the whole run, and the first output is that frame compared with itself.

    The work is split in two so it can be parallelized:
    :meth:`next_reference` is stateful and must see frames in order,
    :meth:`composite` is pure.
    """
    def __init__(
        self,
        params: Optional[ExtractParams] = None,
        tone_curve: Optional[ToneCurve] = None,
    ) -> None:
        self.params = params or ExtractParams()
        if self.params.delay < 0:
            raise ValueError("delay must be >= 0")
        self.tone_curve = tone_curve or ToneCurve(self.params.gamma)
        self._first_frame: Optional[np.ndarray] = None
        self._buffer: Optional[DelayBuffer] = None
        if self.params.delay > 0:
            self._buffer = DelayBuffer(self.params.delay)

    def reset(self) -> None:
        self._first_frame = None
        if self._buffer is not None:
            self._buffer.clear()

    @property
    def primed(self) -> bool:
        if self._buffer is None:
            return self._first_frame is not None
        return self._buffer.is_primed()

    def next_reference(self, frame_bgr: np.ndarray) -> Optional[np.ndarray]:
        """
        Return the reference frame to compare ``frame_bgr`` against, or
        ``None`` if the delay buffer is still priming.
        """
        if self._buffer is None:
            if self._first_frame is None:
                self._first_frame = frame_bgr.copy()
            return self._first_frame

        if not self._buffer.is_primed():
            self._buffer.push(frame_bgr.copy())
            logger.debug("priming delay buffer: %d/%d", len(self._buffer), self._buffer.capacity)
            return None
        reference = self._buffer.pop_oldest()
        self._buffer.push(frame_bgr.copy())
        return reference

    def composite(self, frame_bgr: np.ndarray, reference: np.ndarray) -> np.ndarray:
        motion_frame = compare_frames(frame_bgr, reference)
        if self.params.overlay:
            return overlay_motion(frame_bgr, motion_frame)
        return self.tone_curve.apply(motion_frame)

    def process(self, frame_bgr: np.ndarray) -> Optional[np.ndarray]:
        """
        Process a single frame and return the motion representation, or
        ``None`` while the delay buffer is priming.

        - overlay off: BGR difference image, mid-gray where nothing moved,
          passed through the tone curve.
        - overlay on: the original frame with moving regions whitened.
        """
        reference = self.next_reference(frame_bgr)
        if reference is None:
            return None
        return self.composite(frame_bgr, reference)
