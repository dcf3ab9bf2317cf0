from __future__ import annotations
import argparse
import logging
import math
import signal
import threading
from typing import Any, Dict, List, Optional

from .core import DEFAULT_GAMMA, ExtractParams, ToneCurve
from .errors import MotionExtractError
from .io import FrameSink, FrameSource
from .pipeline import delay_from_seconds, run, validate_delay

logger = logging.getLogger(__name__)

_EPILOG = """\
A small offset shows fast movements in the video. A large offset shows slow
movements in the video. If -f or -s is set to 0, the output video shows change
from the start of the video.

Example:
  motionext input.mp4 output.mp4 -s 1
"""

def _non_negative_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")
    if n < 0:
        raise argparse.ArgumentTypeError("Frames must be a positive number.")
    return n

def _non_negative_float(value: str) -> float:
    try:
        x = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if not math.isfinite(x):
        raise argparse.ArgumentTypeError(f"must be a finite number: {value!r}")
    if x < 0:
        raise argparse.ArgumentTypeError("Seconds must be a positive number.")
    return x

def _positive_float(value: str) -> float:
    x = float(value)
    if not math.isfinite(x):
        raise argparse.ArgumentTypeError(f"must be a finite number: {value!r}")
    if x <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")
    return x

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="motionext",
        description="Extract motion from a video by comparing each frame with a delayed copy of itself.",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("input", help="Input video path, printf pattern (e.g. img_%%06d.png), directory, or glob")
    p.add_argument("output", nargs="?",
                   help="Output video path (.mp4/.avi). Not required when using --out-seq or --out-dir.")

    offset = p.add_mutually_exclusive_group(required=True)
    offset.add_argument("-f", "--frames", type=_non_negative_int, help="Number of frames to offset by")
    offset.add_argument("-s", "--seconds", type=_non_negative_float, help="Number of seconds to offset by")

    p.add_argument("-o", "--overlay", action="store_true",
                   help="Overlay the extracted motion over the original video")
    p.add_argument("--gamma", type=_positive_float, default=DEFAULT_GAMMA,
                   help="Gamma applied to the motion frames when not overlaying (default: 1/1.1).")

    # I/O extras
    p.add_argument("--codec", type=str, default=None,
                   help="FourCC of the output video (default: mp4v for .mp4, XVID otherwise).")
    p.add_argument("--in-fps", type=_positive_float, default=None,
                   help="FPS hint for image sequences or sources that report 0.")
    p.add_argument("--out-seq", type=str, default=None, help='Image sequence template, e.g. "out/frame_%%06d.png"')
    p.add_argument("--out-dir", type=str, default=None, help="Directory to write image sequence frames.")

    # Multithreading
    p.add_argument("--workers", type=int, default=1, help="Worker threads for the compare/composite stage.")
    p.add_argument("--max-futures", type=int, default=32, help="Max in-flight tasks when --workers > 1.")

    p.add_argument("--log-level", default="INFO",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Logging verbosity.")
    return p

def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

def _install_stop_handlers(stop: threading.Event) -> Dict[int, Any]:
    """Make SIGINT/SIGTERM set ``stop``; returns the handlers it replaced."""
    def _handle(signum, _frame):
        logger.warning("received signal %d, stopping after the current frame", signum)
        stop.set()

    # signal handlers can only be installed from the main thread
    if threading.current_thread() is not threading.main_thread():
        return {}
    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle)
    return previous

def _restore_handlers(previous: Dict[int, Any]) -> None:
    for signum, handler in previous.items():
        signal.signal(signum, handler)

def main(argv: Optional[List[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    _setup_logging(args.log_level)

    if not (args.output or args.out_seq or args.out_dir):
        p.error("an output path, --out-seq or --out-dir is required")
    if args.workers < 1 or args.max_futures < 1:
        p.error("--workers and --max-futures must be >= 1")

    stop = threading.Event()
    previous_handlers = _install_stop_handlers(stop)

    try:
        tone_curve = ToneCurve(args.gamma)
        with FrameSource(args.input, in_fps=args.in_fps) as fs:
            info = fs.info

            if args.seconds is not None:
                delay = delay_from_seconds(args.seconds, info.fps)
                logger.info("offset of %g second(s) is %d frame(s)", args.seconds, delay)
            else:
                delay = args.frames
            validate_delay(delay, info, seconds=args.seconds)

            with FrameSink(
                output=args.output,
                frame_size=(info.width, info.height),
                fps=info.fps,
                codec=args.codec,
                out_seq=args.out_seq,
                out_dir=args.out_dir,
            ) as sink:
                params = ExtractParams(delay=delay, overlay=args.overlay, gamma=args.gamma)
                stats = run(
                    fs, sink, params,
                    tone_curve=tone_curve,
                    stop=stop,
                    workers=args.workers,
                    max_futures=args.max_futures,
                )
    except MotionExtractError as e:
        logger.error("Error: %s", e)
        return 1
    finally:
        _restore_handlers(previous_handlers)

    return 130 if stats.cancelled else 0
