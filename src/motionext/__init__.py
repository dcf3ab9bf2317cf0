"""
motionext package

Reveals motion in a video by comparing every frame with a time-delayed copy
of the same video. Still regions turn mid-gray, moving regions stand out.
Built on OpenCV and NumPy.

The primary API is :class:`motionext.core.MotionExtractor` with its
parameter dataclass :class:`motionext.core.ExtractParams`, plus the
building blocks it is made of:
- :class:`motionext.core.ToneCurve`
- :func:`motionext.core.compare_frames`
- :func:`motionext.core.overlay_motion`
- :class:`motionext.core.DelayBuffer`

:func:`motionext.pipeline.run` drives a whole source through an extractor
into a sink.
"""

from .core import (
    DelayBuffer,
    ExtractParams,
    MotionExtractor,
    ToneCurve,
    compare_frames,
    overlay_motion,
)
from .errors import (
    CreateError,
    DimensionMismatch,
    MotionExtractError,
    OffsetTooLarge,
    OpenError,
    Underflow,
)
from .pipeline import RunStats, run

__all__ = [
    "DelayBuffer",
    "ExtractParams",
    "MotionExtractor",
    "ToneCurve",
    "compare_frames",
    "overlay_motion",
    "CreateError",
    "DimensionMismatch",
    "MotionExtractError",
    "OffsetTooLarge",
    "OpenError",
    "Underflow",
    "RunStats",
    "run",
]
