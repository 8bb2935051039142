import os
import re
from typing import Callable, Optional

import ffmpeg
from loguru import logger

from captioner.config import settings
from captioner.core.errors import EncodeFailed, PreviewGenerationFailed
from captioner.models.schemas import MediaInfo, ProcessingOptions, ReconcilePlan
from captioner.services.artifact_cleaner import ArtifactCleaner
from captioner.services.video.command_runner import CommandResult, CommandSpec, run_command
from captioner.services.video.duration_reconciler import MIN_PADDING_SECONDS
from captioner.utils.subtitle_writer import SubtitleWriter

ProgressCallback = Callable[[int, str], None]  # (overall_percent, message)

# Slice of the job's overall progress owned by the final encode
ENCODE_BAND_START = 55
ENCODE_BAND_END = 95

ELAPSED_PATTERN = re.compile(r'time=(\d+):(\d{2}):(\d{2}(?:\.\d+)?)')


def parse_elapsed(line: str) -> Optional[float]:
    """Seconds from an ffmpeg stats line ('... time=00:01:02.50 ...'), else None."""
    match = ELAPSED_PATTERN.search(line)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def encode_percent(elapsed: float, window: float) -> float:
    if window <= 0:
        return 0.0
    return max(0.0, min(100.0, elapsed / window * 100))


def to_overall_progress(percent: float) -> int:
    """Map 0-100% of the encode onto the job's 55-95% band."""
    span = ENCODE_BAND_END - ENCODE_BAND_START
    return int(ENCODE_BAND_START + span * max(0.0, min(100.0, percent)) / 100)


def _failure_detail(result: CommandResult) -> str:
    return result.stderr[-4000:]


class MediaInvoker:
    """Builds and runs the two ffmpeg jobs: the GIF preview and the captioned encode."""

    def __init__(self, cleaner: Optional[ArtifactCleaner] = None):
        self.cleaner = cleaner or ArtifactCleaner()

    # --- Preview ---

    def build_palette_command(self, video_path: str, palette_path: str, seconds: float) -> CommandSpec:
        stream = self._preview_frames(video_path, seconds)
        out = (
            stream.filter('palettegen')
            .output(palette_path, vframes=1)
            .global_args('-hide_banner')
            .overwrite_output()
        )
        return CommandSpec.from_argv(out.compile(cmd=settings.FFMPEG_PATH))

    def build_gif_command(self, video_path: str, palette_path: str, preview_path: str, seconds: float) -> CommandSpec:
        frames = self._preview_frames(video_path, seconds)
        palette = ffmpeg.input(palette_path)
        out = (
            ffmpeg.filter([frames, palette], 'paletteuse')
            .output(preview_path)
            .global_args('-hide_banner')
            .overwrite_output()
        )
        return CommandSpec.from_argv(out.compile(cmd=settings.FFMPEG_PATH))

    def _preview_frames(self, video_path: str, seconds: float):
        return (
            ffmpeg.input(video_path, t=f"{seconds:.3f}")
            .video
            .filter('fps', fps=settings.PREVIEW_FPS)
            .filter('scale', settings.PREVIEW_WIDTH, -1, flags='lanczos')
        )

    def generate_preview(self, video_path: str, preview_path: str, window_seconds: float, job_id: str) -> str:
        """
        Two-pass GIF: palettegen into a job-scoped PNG, then paletteuse.
        The palette is removed whether or not the passes succeed.
        """
        seconds = min(settings.PREVIEW_SECONDS, window_seconds)
        palette_path = str(settings.PREVIEW_DIR / f"palette-{job_id}.png")
        try:
            for spec in (
                self.build_palette_command(video_path, palette_path, seconds),
                self.build_gif_command(video_path, palette_path, preview_path, seconds),
            ):
                try:
                    result = run_command(spec)
                except OSError as e:
                    raise PreviewGenerationFailed("Could not launch ffmpeg for preview", detail=str(e))
                if not result.ok:
                    logger.error(f"Preview pass failed with code {result.returncode}")
                    raise PreviewGenerationFailed(
                        f"Preview generation failed with code {result.returncode}",
                        detail=_failure_detail(result),
                        returncode=result.returncode,
                    )
        finally:
            self.cleaner.delete(palette_path)

        logger.info(f"Preview generated: {preview_path}")
        return preview_path

    # --- Final Encode ---

    def build_encode_command(self,
                             video_path: str,
                             srt_path: str,
                             output_path: str,
                             plan: ReconcilePlan,
                             media: MediaInfo,
                             options: ProcessingOptions) -> CommandSpec:
        source = ffmpeg.input(os.path.abspath(video_path))

        video = source.video
        if plan.policy == "pad" and plan.padding_seconds >= MIN_PADDING_SECONDS:
            padding = ffmpeg.input(
                f"color=c={settings.PADDING_COLOR}:s={media.width}x{media.height}:d={plan.padding_seconds:.3f}",
                f='lavfi',
            )
            video = ffmpeg.concat(
                video.filter('setsar', '1'),
                padding.video.filter('setsar', '1'),
                v=1, a=0,
            )

        # Burn in after padding so cues in the blank tail are drawn too.
        # Filter gets the bare file name; ffmpeg runs inside the subtitle dir
        # so the path never needs filtergraph escaping.
        style = SubtitleWriter.build_force_style(options, settings.SUBTITLE_FONT_NAME)
        video = video.filter('subtitles', os.path.basename(srt_path), force_style=style)

        streams = [video]
        output_kwargs = {
            'vcodec': 'libx264',
            'crf': settings.ENCODE_CRF,
            'preset': settings.ENCODE_PRESET,
            'pix_fmt': 'yuv420p',
            'movflags': 'faststart',
            't': f"{plan.window_seconds:.3f}",
        }
        if media.has_audio:
            streams.append(source.audio)
            output_kwargs['acodec'] = 'aac'

        out = ffmpeg.output(*streams, os.path.abspath(output_path), **output_kwargs)
        out = out.global_args('-hide_banner').overwrite_output()
        return CommandSpec.from_argv(
            out.compile(cmd=settings.FFMPEG_PATH),
            cwd=os.path.dirname(os.path.abspath(srt_path)),
        )

    def encode(self,
               video_path: str,
               srt_path: str,
               output_path: str,
               plan: ReconcilePlan,
               media: MediaInfo,
               options: ProcessingOptions,
               progress_callback: Optional[ProgressCallback] = None) -> str:
        spec = self.build_encode_command(video_path, srt_path, output_path, plan, media, options)
        last_reported = ENCODE_BAND_START

        def on_line(line: str):
            nonlocal last_reported
            elapsed = parse_elapsed(line)
            if elapsed is None or not progress_callback:
                return
            percent = encode_percent(elapsed, plan.window_seconds)
            overall = to_overall_progress(percent)
            if overall > last_reported:
                last_reported = overall
                progress_callback(overall, f"Encoding video... {int(percent)}%")

        try:
            result = run_command(spec, on_stderr_line=on_line)
        except OSError as e:
            raise EncodeFailed("Could not launch ffmpeg for encode", detail=str(e))

        if not result.ok:
            logger.error(f"FFmpeg encode failed with code {result.returncode}")
            raise EncodeFailed(
                f"FFmpeg failed with code {result.returncode}",
                detail=_failure_detail(result),
                returncode=result.returncode,
            )

        logger.info(f"Encode finished in {result.duration:.1f}s: {output_path}")
        return output_path
