"""
Background Job Runner - drives one caption job from 'running' to a terminal state.

1. Marks the job running
2. Hands the tracker a progress callback
3. Runs the blocking pipeline in the default executor
4. Records the result or the error, then schedules retirement
"""
import asyncio
from loguru import logger

from captioner.core.errors import CaptionError
from captioner.models.schemas import CaptionJob, JobError
from captioner.services.caption_pipeline import CaptionPipeline
from captioner.services.job_tracker import JobTracker


class JobRunner:
    def __init__(self, tracker: JobTracker, pipeline: CaptionPipeline):
        self.tracker = tracker
        self.pipeline = pipeline

    async def run(self, job: CaptionJob):
        job_id = job.job_id
        tracker = self.tracker
        tracker.mark_running(job_id, "Starting...")

        # JobTracker is lock-guarded, so the executor thread may write directly
        def progress_callback(progress: int, message: str):
            tracker.update_progress(job_id, progress, message)

        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None,
                lambda: self.pipeline.run(job, progress_callback)
            )
            tracker.complete(job_id, result, "Captioning complete!")
        except CaptionError as e:
            tracker.fail(job_id, JobError(**e.to_payload()))
        except Exception as e:
            logger.exception(f"Job {job_id} crashed: {e}")
            tracker.fail(job_id, JobError(code="InternalError", message=str(e) or e.__class__.__name__))
        finally:
            tracker.schedule_retirement(job_id)
