"""
Frame-by-frame driver: read from a source, compare each frame with its
delayed reference, write the composited result to a sink.

Sources and sinks only need the small surface of
:class:`motionext.io.FrameSource` / :class:`motionext.io.FrameSink`:
``read() -> (ok, frame)`` and ``write(frame)``.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging
import math
import threading

from .core import ExtractParams, MotionExtractor, ToneCurve
from .errors import OffsetTooLarge
from .io import StreamInfo

logger = logging.getLogger(__name__)

@dataclass
class RunStats:
    frames_read: int = 0
    frames_written: int = 0
    cancelled: bool = False

def delay_from_seconds(seconds: float, fps: float) -> int:
    """Frames covered by ``seconds`` at ``fps``, truncated toward zero."""
    if not math.isfinite(seconds) or seconds < 0:
        raise ValueError(f"seconds must be a finite number >= 0, got {seconds}")
    frames = seconds * fps
    if not math.isfinite(frames):
        raise OffsetTooLarge(f"Cannot offset by {seconds:g} second(s).")
    return int(frames)

def validate_delay(delay: int, info: StreamInfo, seconds: Optional[float] = None) -> None:
    """
    Reject delays that leave no frame to compare.

    A source with ``frame_count`` frames produces ``frame_count - delay``
    outputs, so the delay must be strictly smaller than the frame count.
    Sources that do not report a frame count are not checked. ``seconds``
    only changes the wording of the error.
    """
    if delay < 0:
        raise ValueError("delay must be >= 0")
    if info.frame_count is None:
        logger.warning("source does not report a frame count; cannot validate delay of %d", delay)
        return
    if delay < info.frame_count:
        return
    if seconds is not None and info.duration is not None:
        raise OffsetTooLarge(
            f"Input video is only {int(info.duration)} second(s) long. Cannot offset by {seconds:g} second(s)."
        )
    raise OffsetTooLarge(
        f"Input video only has {info.frame_count} frame(s). Cannot offset by {delay} frame(s)."
    )

def run(
    fs,
    sink,
    params: ExtractParams,
    tone_curve: Optional[ToneCurve] = None,
    stop: Optional[threading.Event] = None,
    workers: int = 1,
    max_futures: int = 32,
) -> RunStats:
    """
    Run motion extraction over the whole source.

    The stop event is checked between frames only; once it is set nothing
    more is read or written. Any exception raised by the source, the sink or
    the comparison aborts the run.
    """
    extractor = MotionExtractor(params, tone_curve=tone_curve)
    logger.info(
        "extracting motion: delay=%d overlay=%s gamma=%.4f workers=%d",
        params.delay, params.overlay, extractor.tone_curve.gamma, workers,
    )

    if workers > 1:
        from .mt import run_parallel
        stats = run_parallel(extractor, fs, sink, workers=workers,
                             max_futures=max_futures, stop=stop)
    else:
        stats = RunStats()
        while True:
            if stop is not None and stop.is_set():
                stats.cancelled = True
                break
            ok, frame = fs.read()
            if not ok:
                break
            stats.frames_read += 1
            processed = extractor.process(frame)
            if processed is None:
                continue
            sink.write(processed)
            stats.frames_written += 1

    if stats.cancelled:
        logger.warning("cancelled after %d frame(s)", stats.frames_read)
    logger.info("read %d frame(s), wrote %d frame(s)", stats.frames_read, stats.frames_written)
    return stats
