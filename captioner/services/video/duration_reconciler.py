"""
Duration Reconciler: decides how script timing and video length are lined up.

pad:      script runs past the end of the video. The encode appends a blank
          clip of (script - video) seconds so every cue gets rendered.
truncate: video is as long as the script or longer. Only the overlap is
          encoded; cues starting at or after the window are dropped and the
          last kept cue is clamped to the window.

Durations are compared at millisecond resolution, the precision of the SRT
timestamps. Summed cue lengths (3.6 + 4.2 = 7.800000000000001) and ffprobe's
"7.800000" must land on the same side of the boundary.
"""
from typing import List

from loguru import logger

from captioner.models.schemas import MediaInfo, ReconcilePlan, SubtitleCue
from captioner.utils.script_parser import script_duration

TIME_PRECISION = 3  # decimal places, i.e. milliseconds
MIN_PADDING_SECONDS = 10 ** -TIME_PRECISION


def to_millis(seconds: float) -> int:
    return int(round(seconds * 1000))


def truncate_cues(cues: List[SubtitleCue], window: float) -> List[SubtitleCue]:
    """Drop cues starting at/after `window`, clamp the survivor that crosses it."""
    kept = [cue for cue in cues if cue.start < window]
    if kept and kept[-1].end > window:
        last = kept[-1]
        kept[-1] = last.model_copy(update={
            "end": window,
            "duration_seconds": window - last.start,
        })
    return kept


def reconcile(cues: List[SubtitleCue], media: MediaInfo) -> ReconcilePlan:
    script_seconds = script_duration(cues)
    video_seconds = media.duration_seconds
    script_ms = to_millis(script_seconds)
    video_ms = to_millis(video_seconds)

    if script_ms > video_ms:
        padding = (script_ms - video_ms) / 1000
        logger.info(f"Pad policy: script {script_seconds:.3f}s > video {video_seconds:.3f}s, padding {padding:.3f}s")
        return ReconcilePlan(
            policy="pad",
            window_seconds=script_seconds,
            padding_seconds=padding,
            script_duration_seconds=script_seconds,
            video_duration_seconds=video_seconds,
            cues=list(cues),
        )

    # Video covers the script, so the window is the script itself
    window = script_seconds
    kept = truncate_cues(cues, window)
    dropped = len(cues) - len(kept)
    logger.info(f"Truncate policy: window {window:.3f}s (video {video_seconds:.3f}s), dropped {dropped} cues")
    return ReconcilePlan(
        policy="truncate",
        window_seconds=window,
        padding_seconds=0.0,
        script_duration_seconds=script_seconds,
        video_duration_seconds=video_seconds,
        cues=kept,
    )
