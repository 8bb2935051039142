from typing import Any, Callable
from loguru import logger

from captioner.core.errors import ValidationError
from captioner.models.schemas import CaptionJob, CaptionRequest
from captioner.services.artifact_cleaner import ArtifactCleaner
from captioner.services.job_tracker import JobTracker
from captioner.utils.options import parse_processing_options
from captioner.utils.script_parser import parse_script

# Anything that schedules `fn(*args)` without awaiting it, e.g. BackgroundTasks.add_task
Spawner = Callable[..., Any]


class CaptionService:
    """Submission surface: validates synchronously, then hands off to the background."""

    def __init__(self, tracker: JobTracker, runner, cleaner: ArtifactCleaner):
        self.tracker = tracker
        self.runner = runner
        self.cleaner = cleaner

    def prepare(self, req: CaptionRequest) -> CaptionJob:
        """
        Validate a submission and register its job at 0%.

        On a validation failure no job is created and the uploaded files are
        removed before the error propagates.
        """
        try:
            if not req.video_path:
                raise ValidationError("Both script and video files are required")
            options = parse_processing_options(req.options)
            cues = parse_script(req.script_text, options)
        except ValidationError as e:
            logger.warning(f"Rejected submission: {e.message}")
            self.cleaner.cleanup([req.script_path, req.video_path])
            raise

        job_id = self.tracker.create_job("Queued")
        return CaptionJob(
            job_id=job_id,
            cues=cues,
            options=options,
            video_path=req.video_path,
            script_path=req.script_path,
        )

    def submit(self, req: CaptionRequest, spawn: Spawner) -> str:
        job = self.prepare(req)
        spawn(self.runner.run, job)
        logger.info(f"Job {job.job_id} queued ({len(job.cues)} cues)")
        return job.job_id
