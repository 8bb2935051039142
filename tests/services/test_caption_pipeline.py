import os

import pytest
from unittest.mock import MagicMock

from captioner.config import settings
from captioner.core.errors import EncodeFailed, ProbeFailed
from captioner.models.schemas import CaptionJob, MediaInfo
from captioner.services.caption_pipeline import CaptionPipeline
from captioner.utils.script_parser import parse_script


@pytest.fixture
def uploads(workspace):
    script = settings.UPLOAD_DIR / "script-abc.txt"
    script.write_text("Hello world\nThis is a test")
    video = settings.UPLOAD_DIR / "video-abc.mp4"
    video.write_bytes(b"fake")
    return str(script), str(video)


@pytest.fixture
def job(uploads, default_options):
    script, video = uploads
    return CaptionJob(
        job_id="job-1",
        cues=parse_script("Hello world\nThis is a test", default_options),
        options=default_options,
        video_path=video,
        script_path=script,
    )


def _invoker_writing_outputs():
    invoker = MagicMock()

    def preview(video_path, preview_path, window, job_id):
        with open(preview_path, "wb") as f:
            f.write(b"GIF89a")
        return preview_path

    def encode(video_path, srt_path, output_path, plan, media, options, progress_callback=None):
        assert os.path.exists(srt_path)
        if progress_callback:
            progress_callback(80, "Encoding video... 62%")
        with open(output_path, "wb") as f:
            f.write(b"mp4")
        return output_path

    invoker.generate_preview.side_effect = preview
    invoker.encode.side_effect = encode
    return invoker


def test_pipeline_success_pad(job, fast_cleaner, media_5s):
    prober = MagicMock()
    prober.probe.return_value = media_5s
    pipeline = CaptionPipeline(prober, _invoker_writing_outputs(), fast_cleaner)
    progress = []

    result = pipeline.run(job, lambda p, m: progress.append(p))

    paths = CaptionPipeline.artifact_paths("job-1")
    assert progress == sorted(progress)
    assert progress[:2] == [5, 10] and progress[-1] == 95
    assert result["success"] is True
    assert result["policy"] == "pad"
    assert result["padding_seconds"] == pytest.approx(2.8)
    assert result["duration"] == "00:07"
    assert result["subtitles_count"] == 2
    assert result["download_url"] == "/api/v1/captions/job-1/download"
    assert result["cleanup_warnings"] == []

    # Intermediates gone, deliverables kept
    assert not os.path.exists(job.script_path)
    assert not os.path.exists(job.video_path)
    assert not os.path.exists(paths["srt"])
    assert os.path.exists(paths["preview"])
    assert os.path.exists(paths["output"])


def test_pipeline_pads_short_video_and_keeps_every_cue(uploads, default_options, fast_cleaner):
    script, video = uploads
    cues = parse_script("one\ntwo\nthree", default_options)  # ends at 9.9s
    job = CaptionJob(job_id="job-2", cues=cues, options=default_options,
                     video_path=video, script_path=script)
    prober = MagicMock()
    prober.probe.return_value = MediaInfo(duration_seconds=5.0, width=640, height=360)
    invoker = _invoker_writing_outputs()

    result = CaptionPipeline(prober, invoker, fast_cleaner).run(job)

    assert result["policy"] == "pad"
    assert result["padding_seconds"] == pytest.approx(4.9)
    assert result["subtitles_count"] == 3
    assert result["subtitles"][-1]["end"] == pytest.approx(9.9)
    assert result["duration_seconds"] == pytest.approx(9.9)
    plan = invoker.encode.call_args.args[3]
    assert plan.window_seconds == pytest.approx(9.9)


def test_pipeline_truncates_long_video_to_script(uploads, default_options, fast_cleaner):
    script, video = uploads
    cues = parse_script("one\ntwo\nthree", default_options)
    job = CaptionJob(job_id="job-3", cues=cues, options=default_options,
                     video_path=video, script_path=script)
    prober = MagicMock()
    prober.probe.return_value = MediaInfo(duration_seconds=12.0, width=640, height=360)

    result = CaptionPipeline(prober, _invoker_writing_outputs(), fast_cleaner).run(job)

    assert result["policy"] == "truncate"
    assert result["padding_seconds"] == 0
    assert result["subtitles_count"] == 3
    assert result["duration_seconds"] == pytest.approx(9.9)


def test_probe_failure_cleans_everything(job, fast_cleaner):
    prober = MagicMock()
    prober.probe.side_effect = ProbeFailed("Could not read video metadata")
    invoker = MagicMock()
    pipeline = CaptionPipeline(prober, invoker, fast_cleaner)

    with pytest.raises(ProbeFailed):
        pipeline.run(job)

    paths = CaptionPipeline.artifact_paths("job-1")
    invoker.encode.assert_not_called()
    assert not os.path.exists(job.script_path)
    assert not os.path.exists(job.video_path)
    assert not os.path.exists(paths["srt"])
    assert not os.path.exists(paths["output"])


def test_encode_failure_removes_partial_output(job, fast_cleaner, media_5s):
    prober = MagicMock()
    prober.probe.return_value = media_5s
    invoker = _invoker_writing_outputs()
    paths = CaptionPipeline.artifact_paths("job-1")

    def broken_encode(*args, **kwargs):
        with open(paths["output"], "wb") as f:
            f.write(b"partial")
        raise EncodeFailed("FFmpeg failed with code 1", returncode=1)

    invoker.encode.side_effect = broken_encode

    with pytest.raises(EncodeFailed):
        CaptionPipeline(prober, invoker, fast_cleaner).run(job)

    assert not os.path.exists(paths["output"])
    assert not os.path.exists(paths["preview"])
    assert not os.path.exists(paths["srt"])


def test_cleanup_failure_is_a_warning(job, media_5s):
    prober = MagicMock()
    prober.probe.return_value = media_5s
    cleaner = MagicMock()
    cleaner.cleanup.return_value = [MagicMock(path=job.video_path)]

    result = CaptionPipeline(prober, _invoker_writing_outputs(), cleaner).run(job)

    assert result["success"] is True
    assert result["cleanup_warnings"] == [job.video_path]
