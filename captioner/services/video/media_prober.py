import ffmpeg
from loguru import logger
from captioner.config import settings
from captioner.core.errors import MissingProperties, NoVideoStream, ProbeFailed
from captioner.models.schemas import MediaInfo


def _decode(stream_output) -> str:
    if isinstance(stream_output, bytes):
        return stream_output.decode("utf-8", errors="replace")
    return stream_output or ""


class MediaProber:
    @staticmethod
    def probe(video_path: str) -> MediaInfo:
        """
        One-shot ffprobe of the uploaded video.
        No retry: a failed probe aborts the job.
        """
        try:
            probe = ffmpeg.probe(video_path, cmd=settings.FFPROBE_PATH)
        except ffmpeg.Error as e:
            logger.error(f"ffprobe failed for {video_path}")
            raise ProbeFailed("Could not read video metadata", detail=_decode(e.stderr)[-2000:])
        except (OSError, ValueError) as e:
            # ffprobe missing, or output was not JSON
            logger.error(f"ffprobe could not run for {video_path}: {e}")
            raise ProbeFailed("Could not read video metadata", detail=str(e))

        return MediaProber.parse_probe(probe)

    @staticmethod
    def parse_probe(probe: dict) -> MediaInfo:
        streams = probe.get('streams') or []
        video_info = next((s for s in streams if s.get('codec_type') == 'video'), None)
        if video_info is None:
            raise NoVideoStream("No video stream found in upload")

        has_audio = any(s.get('codec_type') == 'audio' for s in streams)

        try:
            duration = float(probe['format']['duration'])
            w = int(video_info['width'])
            h = int(video_info['height'])
        except (KeyError, TypeError, ValueError) as e:
            raise MissingProperties("Video duration or dimensions unavailable", detail=repr(e))

        if duration <= 0 or w <= 0 or h <= 0:
            raise MissingProperties(f"Invalid video properties: duration={duration}, size={w}x{h}")

        # Detect Rotation
        rotate = 0

        # 1. Check Tags usually "rotate": "90"
        tags = video_info.get('tags', {})
        if 'rotate' in tags:
            try:
                rotate = int(tags['rotate'])
            except (TypeError, ValueError):
                rotate = 0

        # 2. Check Side Data (Display Matrix) if tag missing
        if rotate == 0 and 'side_data_list' in video_info:
            for side_data in video_info['side_data_list']:
                if side_data.get('side_data_type') == 'Display Matrix':
                    rotate = int(side_data.get('rotation', 0))
                    break

        # ffmpeg auto-rotates on decode, so frames come out transposed
        if abs(rotate) in [90, 270]:
            w, h = h, w
            logger.debug(f"Video is rotated {rotate} deg. Swapping resolution to {w}x{h}")

        info = MediaInfo(duration_seconds=duration, width=w, height=h, has_audio=has_audio)
        logger.info(f"Probed video: {duration:.2f}s, {w}x{h}, audio={has_audio}")
        return info
