"""
Exception types raised by motionext.

Every error derives from :class:`MotionExtractError` so the command line can
report any failure in one place. Each kind also derives from the builtin it
specializes, so callers that only know about ``RuntimeError``/``ValueError``
keep working.
"""

from __future__ import annotations

class MotionExtractError(Exception):
    """Base class for all motionext errors."""

class OpenError(MotionExtractError, RuntimeError):
    """The media source could not be opened."""

class CreateError(OpenError):
    """The media sink could not be created."""

class DimensionMismatch(MotionExtractError, ValueError):
    """Two frames that must share a layout do not."""

    def __init__(self, expected: tuple, actual: tuple) -> None:
        super().__init__(f"Frame shape mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual

class OffsetTooLarge(MotionExtractError, ValueError):
    """The requested delay leaves no frames to compare."""

class DelayBufferError(MotionExtractError, RuntimeError):
    pass

class Underflow(DelayBufferError):
    """Popped a reference from a buffer that is not primed yet."""

class Overflow(DelayBufferError):
    """Pushed onto a buffer that is already at capacity."""
