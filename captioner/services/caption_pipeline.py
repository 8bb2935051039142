from typing import Callable, Optional
from loguru import logger
from captioner.config import settings
from captioner.models.schemas import CaptionJob, CaptionResult
from captioner.services.artifact_cleaner import ArtifactCleaner
from captioner.services.video.duration_reconciler import reconcile
from captioner.services.video.media_invoker import MediaInvoker
from captioner.services.video.media_prober import MediaProber
from captioner.utils.subtitle_writer import SubtitleWriter

ProgressCallback = Callable[[int, str], None]


class CaptionPipeline:
    """
    The blocking body of one caption job:
    probe -> reconcile -> write subtitles -> preview -> encode -> cleanup.

    Runs on an executor thread. Stages are strictly sequential and report
    non-decreasing progress through `progress_callback`.
    """

    def __init__(self,
                 prober: Optional[MediaProber] = None,
                 invoker: Optional[MediaInvoker] = None,
                 cleaner: Optional[ArtifactCleaner] = None):
        self.prober = prober or MediaProber()
        self.cleaner = cleaner or ArtifactCleaner()
        self.invoker = invoker or MediaInvoker(self.cleaner)

    @staticmethod
    def artifact_paths(job_id: str) -> dict:
        return {
            "srt": str(settings.SUBTITLE_DIR / f"subtitles-{job_id}.srt"),
            "preview": str(settings.PREVIEW_DIR / f"preview-{job_id}.gif"),
            "output": str(settings.OUTPUT_DIR / f"captioned-{job_id}.mp4"),
        }

    def run(self, job: CaptionJob, progress_callback: Optional[ProgressCallback] = None) -> dict:
        def report(progress: int, message: str):
            if progress_callback:
                progress_callback(progress, message)

        paths = self.artifact_paths(job.job_id)
        intermediates = [job.script_path, job.video_path, paths["srt"]]

        try:
            report(5, "Validating inputs...")
            report(10, f"Parsed {len(job.cues)} subtitles")

            report(20, "Analyzing video...")
            media = self.prober.probe(job.video_path)

            report(30, "Matching script to video length...")
            plan = reconcile(job.cues, media)

            report(35, "Writing subtitles...")
            SubtitleWriter.save_srt(plan.cues, paths["srt"])

            report(45, "Generating preview...")
            self.invoker.generate_preview(job.video_path, paths["preview"], plan.window_seconds, job.job_id)

            report(55, "Encoding video...")
            self.invoker.encode(
                job.video_path,
                paths["srt"],
                paths["output"],
                plan,
                media,
                job.options,
                progress_callback=progress_callback,
            )
        except Exception as e:
            logger.error(f"Caption job {job.job_id} aborted: {e}")
            # Nothing partial survives a failed job
            self.cleaner.cleanup(intermediates + [paths["preview"], paths["output"]])
            raise

        report(95, "Cleaning up...")
        failures = self.cleaner.cleanup(intermediates)

        result = CaptionResult(
            duration=SubtitleWriter.format_duration(plan.window_seconds),
            duration_seconds=plan.window_seconds,
            subtitles_count=len(plan.cues),
            subtitles=plan.cues,
            policy=plan.policy,
            padding_seconds=plan.padding_seconds,
            preview_path=paths["preview"],
            output_path=paths["output"],
            preview_url=f"/api/v1/captions/{job.job_id}/preview",
            download_url=f"/api/v1/captions/{job.job_id}/download",
            cleanup_warnings=[failure.path for failure in failures],
        )
        return result.model_dump(mode="json")
