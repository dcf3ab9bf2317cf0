import signal

import cv2
import numpy as np
import pytest

from motionext import cli
from motionext.cli import main
from motionext.core import ExtractParams, MotionExtractor


def _write_frames(directory, n=6, h=24, w=32):
    directory.mkdir()
    frames = []
    for i in range(n):
        f = np.zeros((h, w, 3), dtype=np.uint8)
        cv2.rectangle(f, (2 + 3 * i, 4), (8 + 3 * i, 12), (255, 255, 255), -1)
        cv2.imwrite(str(directory / f"frame_{i:03d}.png"), f)
        frames.append(f)
    return frames

def _read_dir(directory):
    return [cv2.imread(str(p), cv2.IMREAD_COLOR) for p in sorted(directory.glob("*.png"))]

def test_cli_frames_offset(tmp_path):
    frames = _write_frames(tmp_path / "in")
    out_dir = tmp_path / "out"
    assert main([str(tmp_path / "in"), "--out-dir", str(out_dir), "-f", "2"]) == 0

    written = _read_dir(out_dir)
    assert len(written) == 4
    me = MotionExtractor(ExtractParams(delay=2))
    expected = [o for o in (me.process(f) for f in frames) if o is not None]
    for got, want in zip(written, expected):
        assert np.array_equal(got, want)

def test_cli_seconds_offset(tmp_path):
    _write_frames(tmp_path / "in", n=10)
    out_dir = tmp_path / "out"
    args = [str(tmp_path / "in"), "--out-dir", str(out_dir), "--in-fps", "10"]

    assert main(args + ["-s", "1"]) == 1
    assert not out_dir.exists()

    assert main(args + ["-s", "0.5"]) == 0
    assert len(_read_dir(out_dir)) == 5

def test_cli_zero_offset_overlay(tmp_path):
    frames = _write_frames(tmp_path / "in", n=3)
    out_dir = tmp_path / "out"
    assert main([str(tmp_path / "in"), "--out-dir", str(out_dir), "-f", "0", "--overlay"]) == 0
    written = _read_dir(out_dir)
    assert len(written) == 3
    # nothing moved yet: the first output is the untouched first frame
    assert np.array_equal(written[0], frames[0])

def test_cli_parallel_workers(tmp_path):
    _write_frames(tmp_path / "in", n=8)
    seq_dir, par_dir = tmp_path / "seq", tmp_path / "par"
    assert main([str(tmp_path / "in"), "--out-dir", str(seq_dir), "-f", "1"]) == 0
    assert main([str(tmp_path / "in"), "--out-dir", str(par_dir), "-f", "1", "--workers", "3"]) == 0
    seq, par = _read_dir(seq_dir), _read_dir(par_dir)
    assert len(seq) == len(par) == 7
    assert all(np.array_equal(a, b) for a, b in zip(seq, par))

def test_cli_offset_too_large(tmp_path):
    _write_frames(tmp_path / "in", n=4)
    assert main([str(tmp_path / "in"), "--out-dir", str(tmp_path / "out"), "-f", "4"]) == 1

def test_cli_missing_input(tmp_path):
    assert main([str(tmp_path / "nope.mp4"), str(tmp_path / "out.mp4"), "-f", "1"]) == 1

def test_cli_frames_and_seconds_are_exclusive(tmp_path):
    with pytest.raises(SystemExit) as exc:
        main(["in.mp4", "out.mp4", "-f", "1", "-s", "1"])
    assert exc.value.code == 2

def test_cli_requires_an_offset():
    with pytest.raises(SystemExit) as exc:
        main(["in.mp4", "out.mp4"])
    assert exc.value.code == 2

def test_cli_rejects_negative_offset():
    with pytest.raises(SystemExit) as exc:
        main(["in.mp4", "out.mp4", "-f", "-1"])
    assert exc.value.code == 2

def test_cli_requires_output():
    with pytest.raises(SystemExit) as exc:
        main(["in.mp4", "-f", "1"])
    assert exc.value.code == 2

def test_cli_help(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--help"])
    assert exc.value.code == 0
    out = capsys.readouterr().out
    assert "--frames" in out
    assert "A small offset shows fast movements" in out

@pytest.mark.parametrize("template", ["frame.png", "f_%03d.xyz"])
def test_cli_bad_sequence_template(tmp_path, template):
    _write_frames(tmp_path / "in", n=3)
    out_seq = tmp_path / "seq" / template
    assert main([str(tmp_path / "in"), "--out-seq", str(out_seq), "-f", "1"]) == 1
    assert not (tmp_path / "seq").exists()

@pytest.mark.parametrize("extra", [
    ["-s", "nan"],
    ["-s", "inf"],
    ["-f", "1", "--gamma", "nan"],
    ["-f", "1", "--gamma", "inf"],
    ["-f", "1", "--in-fps", "nan"],
])
def test_cli_rejects_non_finite_numbers(extra):
    with pytest.raises(SystemExit) as exc:
        main(["in.mp4", "out.mp4"] + extra)
    assert exc.value.code == 2

@pytest.mark.parametrize("signum", [signal.SIGINT, signal.SIGTERM])
def test_cli_signal_cancels_run(tmp_path, monkeypatch, signum):
    _write_frames(tmp_path / "in", n=5)
    out_dir = tmp_path / "out"
    before = signal.getsignal(signum)
    installed = []
    real_run = cli.run

    def interrupted_run(fs, sink, params, **kwargs):
        installed.append(signal.getsignal(signum))
        signal.raise_signal(signum)
        return real_run(fs, sink, params, **kwargs)

    monkeypatch.setattr(cli, "run", interrupted_run)
    assert main([str(tmp_path / "in"), "--out-dir", str(out_dir), "-f", "1"]) == 130
    assert list(out_dir.glob("*.png")) == []
    assert installed and installed[0] is not before
    assert signal.getsignal(signum) is before

def test_cli_restores_handlers_after_error(tmp_path):
    before = signal.getsignal(signal.SIGINT)
    assert main([str(tmp_path / "nope.mp4"), str(tmp_path / "out.mp4"), "-f", "1"]) == 1
    assert signal.getsignal(signal.SIGINT) is before
