from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple
import glob
import logging
import cv2
import numpy as np

from .errors import CreateError, OpenError

logger = logging.getLogger(__name__)

_VIDEO_EXTS = {".mp4", ".avi", ".mov", ".mkv", ".webm", ".mpg", ".mpeg", ".m4v"}
_IMAGE_EXTS = {".png", ".jpg", ".jpeg", ".bmp", ".tiff", ".tif", ".webp"}

_DEFAULT_FPS = 30.0

def _is_video_file(p: str) -> bool:
    ext = Path(p).suffix.lower()
    return ext in _VIDEO_EXTS

def _looks_like_printf(s: str) -> bool:
    return "%d" in s or "%0" in s

def _looks_like_glob(s: str) -> bool:
    return any(c in s for c in "*?[")

def _default_fourcc(output: str) -> str:
    return "mp4v" if output.lower().endswith(".mp4") else "XVID"

def _check_template(template: str) -> str:
    """Return ``template`` if it names one writable image per frame index."""
    try:
        first = template % 0
    except (TypeError, ValueError) as e:
        raise CreateError(f"Image sequence template needs one frame index placeholder (e.g. %06d): {template!r}") from e
    if not cv2.haveImageWriter(first):
        raise CreateError(f"No image writer for {first!r}")
    return template

@dataclass
class StreamInfo:
    width: int
    height: int
    fps: float
    frame_count: Optional[int] = None

    @property
    def duration(self) -> Optional[float]:
        if self.frame_count is None or self.fps <= 0:
            return None
        return self.frame_count / self.fps

class FrameSource:
    """
    Unified reader:
      - video file (via cv2.VideoCapture)
      - printf image sequence (cv2.VideoCapture supports "img_%06d.png")
      - directory or glob of images (manual reader)

    Raises :class:`OpenError` when the input yields nothing readable.
    """
    def __init__(self, src: str, in_fps: Optional[float] = None):
        self.src = src
        self.in_fps = in_fps
        self._cap: Optional[cv2.VideoCapture] = None
        self._files: Optional[List[str]] = None
        self._idx = 0
        self._info: Optional[StreamInfo] = None

        if _is_video_file(src) or _looks_like_printf(src):
            self._cap = cv2.VideoCapture(src)
            if not self._cap.isOpened():
                raise OpenError(f"Could not open file {src}")
        else:
            p = Path(src)
            if p.is_dir():
                files: List[str] = []
                for ext in _IMAGE_EXTS:
                    files.extend(glob.glob(str(p / f"*{ext}")))
            elif _looks_like_glob(src):
                files = glob.glob(src)
            elif p.is_file():
                # unknown extension: let VideoCapture decide
                self._cap = cv2.VideoCapture(src)
                if not self._cap.isOpened():
                    raise OpenError(f"Could not open file {src}")
                files = []
            else:
                raise OpenError(f"Could not open file {src}")
            if self._cap is None:
                self._files = sorted(files)
                if not self._files:
                    raise OpenError(f"No frames found for: {src}")

        self._probe()
        logger.info(
            "opened %s: %dx%d @ %.3f fps, %s frame(s)",
            src, self.info.width, self.info.height, self.info.fps,
            self.info.frame_count if self.info.frame_count is not None else "unknown",
        )

    def _probe(self) -> None:
        if self._cap is not None:
            w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
            h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
            fps = self._cap.get(cv2.CAP_PROP_FPS) or 0.0
            if fps <= 1e-3:  # some sources report 0
                fps = self.in_fps or _DEFAULT_FPS
            count = int(self._cap.get(cv2.CAP_PROP_FRAME_COUNT))
            self._info = StreamInfo(width=w, height=h, fps=fps,
                                    frame_count=count if count > 0 else None)
        else:
            assert self._files is not None
            first = cv2.imread(self._files[0], cv2.IMREAD_COLOR)
            if first is None:
                raise OpenError(f"Could not read first frame: {self._files[0]}")
            h, w = first.shape[:2]
            fps = self.in_fps or _DEFAULT_FPS
            self._info = StreamInfo(width=w, height=h, fps=fps, frame_count=len(self._files))

    @property
    def info(self) -> StreamInfo:
        assert self._info is not None
        return self._info

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        if self._cap is not None:
            ok, frame = self._cap.read()
            return ok, frame if ok else None
        assert self._files is not None
        if self._idx >= len(self._files):
            return False, None
        f = self._files[self._idx]
        self._idx += 1
        img = cv2.imread(f, cv2.IMREAD_COLOR)
        if img is None:
            logger.warning("could not decode %s, stopping", f)
            return False, None
        return True, img

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()

    def __enter__(self) -> "FrameSource":
        return self

    def __exit__(self, *exc) -> None:
        self.release()

class FrameSink:
    """
    Unified writer:
      - video file (mp4/avi/...) via VideoWriter, FourCC from ``codec``
      - image sequence via template: "out/frame_%06d.png"
      - image directory via out_dir + auto "frame_%06d.png"

    Raises :class:`CreateError` when the writer cannot be created.
    """
    def __init__(
        self,
        output: Optional[str],
        frame_size: Tuple[int, int],
        fps: float,
        codec: Optional[str] = None,
        out_seq: Optional[str] = None,
        out_dir: Optional[str] = None,
    ):
        self._writer: Optional[cv2.VideoWriter] = None
        self._template: Optional[str] = None
        self.frames_written = 0

        w, h = frame_size
        if out_seq:
            self._template = _check_template(out_seq)
            Path(out_seq).parent.mkdir(parents=True, exist_ok=True)
        elif out_dir:
            Path(out_dir).mkdir(parents=True, exist_ok=True)
            self._template = str(Path(out_dir) / "frame_%06d.png")
        elif output and _looks_like_printf(output):
            self._template = _check_template(output)
            Path(output).parent.mkdir(parents=True, exist_ok=True)
        elif output and _is_video_file(output):
            tag = codec or _default_fourcc(output)
            if len(tag) != 4:
                raise CreateError(f"Codec tag must be 4 characters, got {tag!r}")
            fourcc = cv2.VideoWriter_fourcc(*tag)
            self._writer = cv2.VideoWriter(output, fourcc, fps, (w, h))
            if not self._writer.isOpened():
                raise CreateError(f"Could not create the output video file {output}")
            logger.info("writing %s (%s, %dx%d @ %.3f fps)", output, tag, w, h, fps)
        else:
            raise CreateError(
                "Specify a video file path (.mp4/.avi), or use --out-seq TEMPLATE, or --out-dir DIR."
            )

    def write(self, frame: np.ndarray) -> None:
        if self._writer is not None:
            self._writer.write(frame)
        elif self._template:
            fname = self._template % self.frames_written
            try:
                ok = cv2.imwrite(fname, frame)
            except cv2.error as e:
                raise CreateError(f"Could not write frame: {fname}: {e}") from e
            if not ok:
                raise CreateError(f"Could not write frame: {fname}")
        else:
            raise RuntimeError("FrameSink not initialized")
        self.frames_written += 1

    def release(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None

    def __enter__(self) -> "FrameSink":
        return self

    def __exit__(self, *exc) -> None:
        self.release()
