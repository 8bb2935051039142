import os

import pytest
from unittest.mock import patch

from captioner.config import settings
from captioner.core.errors import EncodeFailed, PreviewGenerationFailed
from captioner.models.schemas import MediaInfo, ReconcilePlan
from captioner.services.video.command_runner import CommandResult
from captioner.services.video.duration_reconciler import reconcile
from captioner.services.video.media_invoker import (
    MediaInvoker,
    encode_percent,
    parse_elapsed,
    to_overall_progress,
)
from captioner.utils.script_parser import parse_script


def _result(returncode=0, stderr=""):
    return CommandResult(command=("ffmpeg",), returncode=returncode, stdout="", stderr=stderr,
                         duration=0.1, ok=returncode == 0)


def _arg_after(argv, flag):
    return argv[argv.index(flag) + 1]


@pytest.fixture
def invoker(fast_cleaner):
    return MediaInvoker(fast_cleaner)


@pytest.fixture
def cues(default_options):
    return parse_script("Hello world\nThis is a test", default_options)


# --- Progress parsing ---

@pytest.mark.parametrize("line, expected", [
    ("frame=  120 fps= 30 q=28.0 size=  256kB time=00:00:04.00 bitrate= 524.3kbits/s", 4.0),
    ("size=N/A time=01:02:03.50 bitrate=N/A", 3723.5),
    ("Stream mapping:", None),
])
def test_parse_elapsed(line, expected):
    assert parse_elapsed(line) == expected


def test_progress_band():
    assert encode_percent(5, 10) == 50
    assert encode_percent(30, 10) == 100
    assert encode_percent(1, 0) == 0
    assert to_overall_progress(0) == 55
    assert to_overall_progress(50) == 75
    assert to_overall_progress(100) == 95


# --- Command construction ---

def test_pad_command(invoker, cues, default_options, workspace):
    media = MediaInfo(duration_seconds=5.0, width=1280, height=720, has_audio=True)
    plan = reconcile(cues, media)
    srt = str(settings.SUBTITLE_DIR / "subtitles-job1.srt")
    out = str(settings.OUTPUT_DIR / "captioned-job1.mp4")

    spec = invoker.build_encode_command("/tmp/in.mp4", srt, out, plan, media, default_options)
    argv = spec.argv

    assert spec.program == settings.FFMPEG_PATH
    assert spec.cwd == os.path.dirname(os.path.abspath(srt))
    assert _arg_after(argv, "-f") == "lavfi"
    assert "color=c=black:s=1280x720:d=2.800" in argv
    graph = _arg_after(argv, "-filter_complex")
    assert "subtitles=subtitles-job1.srt" in graph
    assert "setsar" in graph
    # Captions are burned over the padded tail too
    assert graph.index("concat") < graph.index("subtitles")
    assert _arg_after(argv, "-t") == "7.800"
    assert "0:a" in argv
    assert _arg_after(argv, "-vcodec") == "libx264"
    assert argv[-1] == "-y"


def test_truncate_command(invoker, cues, default_options, workspace):
    media = MediaInfo(duration_seconds=10.0, width=640, height=360, has_audio=False)
    plan = reconcile(cues, media)

    spec = invoker.build_encode_command("/tmp/in.mp4", "/tmp/subs/s.srt", "/tmp/out.mp4",
                                        plan, media, default_options)
    argv = spec.argv

    assert "lavfi" not in argv
    assert "concat" not in _arg_after(argv, "-filter_complex")
    assert _arg_after(argv, "-t") == "7.800"
    assert "0:a" not in argv
    assert spec.cwd == "/tmp/subs"


def test_video_matching_script_gets_no_padding_clip(invoker, cues, default_options, workspace):
    # Cue ends sum to 7.800000000000001
    media = MediaInfo(duration_seconds=float("7.800000"), width=640, height=360)
    plan = reconcile(cues, media)

    spec = invoker.build_encode_command("/tmp/in.mp4", "/tmp/subs/s.srt", "/tmp/out.mp4",
                                        plan, media, default_options)

    assert "lavfi" not in spec.argv
    assert not any(arg.startswith("color=") for arg in spec.argv)
    assert "concat" not in _arg_after(spec.argv, "-filter_complex")


def test_sub_millisecond_padding_is_skipped(invoker, cues, default_options, workspace):
    media = MediaInfo(duration_seconds=7.0, width=640, height=360)
    plan = ReconcilePlan(policy="pad", window_seconds=7.0004, padding_seconds=0.0004,
                         script_duration_seconds=7.0004, video_duration_seconds=7.0,
                         cues=cues)

    spec = invoker.build_encode_command("/tmp/in.mp4", "/tmp/subs/s.srt", "/tmp/out.mp4",
                                        plan, media, default_options)

    assert "lavfi" not in spec.argv
    assert "d=0.000" not in " ".join(spec.argv)


def test_preview_commands(invoker, workspace):
    palette = invoker.build_palette_command("/tmp/in.mp4", "/tmp/palette.png", 3.0)
    assert _arg_after(palette.argv, "-t") == "3.000"
    assert "palettegen" in _arg_after(palette.argv, "-filter_complex")
    assert _arg_after(palette.argv, "-vframes") == "1"

    gif = invoker.build_gif_command("/tmp/in.mp4", "/tmp/palette.png", "/tmp/p.gif", 3.0)
    graph = _arg_after(gif.argv, "-filter_complex")
    assert "paletteuse" in graph
    assert "fps=fps=10" in graph
    assert "scale=320:-1:flags=lanczos" in graph
    assert gif.argv.count("-i") == 2


# --- Execution ---

def test_preview_uses_short_window_and_removes_palette(invoker, workspace):
    calls = []

    def fake_run(spec, on_stderr_line=None):
        calls.append(spec)
        if "palettegen" in " ".join(spec.argv):
            (settings.PREVIEW_DIR / "palette-job2.png").write_bytes(b"png")
        return _result()

    with patch("captioner.services.video.media_invoker.run_command", side_effect=fake_run):
        invoker.generate_preview("/tmp/in.mp4", "/tmp/p.gif", 2.0, "job2")

    assert len(calls) == 2
    assert _arg_after(calls[0].argv, "-t") == "2.000"
    assert not (settings.PREVIEW_DIR / "palette-job2.png").exists()


def test_preview_failure_still_removes_palette(invoker, workspace):
    palette = settings.PREVIEW_DIR / "palette-job3.png"
    palette.write_bytes(b"png")

    with patch("captioner.services.video.media_invoker.run_command",
               return_value=_result(1, "Invalid data found")):
        with pytest.raises(PreviewGenerationFailed) as exc:
            invoker.generate_preview("/tmp/in.mp4", "/tmp/p.gif", 5.0, "job3")

    assert exc.value.returncode == 1
    assert "Invalid data found" in exc.value.detail
    assert not palette.exists()


def test_encode_reports_band_progress(invoker, cues, default_options, workspace):
    media = MediaInfo(duration_seconds=10.0, width=640, height=360)
    plan = reconcile(cues, media)  # 7.8s window
    reports = []

    def fake_run(spec, on_stderr_line=None):
        for line in ["Press [q] to stop",
                     "frame=1 time=00:00:03.00 bitrate=1k",
                     "frame=2 time=00:00:03.01 bitrate=1k",
                     "frame=3 time=00:00:08.00 bitrate=1k"]:
            on_stderr_line(line)
        return _result()

    with patch("captioner.services.video.media_invoker.run_command", side_effect=fake_run):
        invoker.encode("/tmp/in.mp4", "/tmp/s.srt", "/tmp/out.mp4", plan, media, default_options,
                       progress_callback=lambda p, m: reports.append((p, m)))

    assert reports == [(70, "Encoding video... 38%"), (95, "Encoding video... 100%")]


def test_encode_failure(invoker, cues, default_options, workspace):
    media = MediaInfo(duration_seconds=10.0, width=640, height=360)
    plan = reconcile(cues, media)

    with patch("captioner.services.video.media_invoker.run_command",
               return_value=_result(183, "Unable to open subtitles")):
        with pytest.raises(EncodeFailed) as exc:
            invoker.encode("/tmp/in.mp4", "/tmp/s.srt", "/tmp/out.mp4", plan, media, default_options)

    assert exc.value.returncode == 183
    assert exc.value.detail == "Unable to open subtitles"


def test_encode_missing_binary(invoker, cues, default_options, workspace):
    media = MediaInfo(duration_seconds=10.0, width=640, height=360)
    plan = reconcile(cues, media)

    with patch("captioner.services.video.media_invoker.run_command", side_effect=FileNotFoundError("ffmpeg")):
        with pytest.raises(EncodeFailed):
            invoker.encode("/tmp/in.mp4", "/tmp/s.srt", "/tmp/out.mp4", plan, media, default_options)
