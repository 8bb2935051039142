import threading
import time
import uuid
from typing import Any, Dict, Optional

from loguru import logger

from captioner.config import settings
from captioner.models.schemas import JobError, JobProgress, JobRecord
from captioner.services.artifact_cleaner import ArtifactCleaner


def new_job_id() -> str:
    """Time-ordered, collision-resistant job token."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


class JobTracker:
    """
    In-memory job registry.

    Created once per process by the service container and never persisted.
    Entries are immutable JobRecord snapshots; every write swaps the whole
    entry under the lock, so pollers never observe a half-applied update.
    Each job is written only by its own background task.

    Retiring a job also deletes its deliverables (preview, output video);
    once the entry is gone no endpoint can serve them.
    """

    # Result keys holding files owned by the job
    DELIVERABLE_KEYS = ("preview_path", "output_path")

    def __init__(self, cleaner: Optional[ArtifactCleaner] = None):
        self.cleaner = cleaner or ArtifactCleaner()
        self.jobs: Dict[str, JobRecord] = {}
        self._lock = threading.Lock()
        self._timers: Dict[str, threading.Timer] = {}

    def create_job(self, initial_message: str = "Queued") -> str:
        job_id = new_job_id()
        now = time.time()
        record = JobRecord(id=job_id, message=initial_message, created_at=now, updated_at=now)
        with self._lock:
            self.jobs[job_id] = record
        logger.info(f"Job {job_id} created")
        return job_id

    def mark_running(self, job_id: str, message: str = "Starting...") -> None:
        self._replace(job_id, status="running", message=message)

    def update_progress(self, job_id: str, progress: float, message: Optional[str] = None) -> None:
        """Progress never goes backwards; late or out-of-order writes are ignored."""
        with self._lock:
            job = self.jobs.get(job_id)
            if job is None or job.is_terminal:
                logger.warning(f"Ignoring progress update for inactive job {job_id}")
                return
            value = max(job.progress, int(max(0, min(100, progress))))
            update: Dict[str, Any] = {"progress": value, "updated_at": time.time()}
            if job.status == "pending":
                update["status"] = "running"
            if message:
                update["message"] = message
            self.jobs[job_id] = job.model_copy(update=update)

    def complete(self, job_id: str, result: Dict[str, Any], message: str = "Completed successfully") -> None:
        now = time.time()
        self._replace(job_id, status="succeeded", progress=100, message=message,
                      result=result, finished_at=now)
        logger.success(f"Job {job_id} completed.")

    def fail(self, job_id: str, error: JobError) -> None:
        now = time.time()
        self._replace(job_id, status="failed", message=error.message, error=error, finished_at=now)
        logger.error(f"Job {job_id} failed: [{error.code}] {error.message}")

    def _replace(self, job_id: str, **changes) -> None:
        with self._lock:
            job = self.jobs.get(job_id)
            if job is None:
                logger.warning(f"Job {job_id} not found during update.")
                return
            if job.is_terminal:
                logger.warning(f"Job {job_id} already finished ({job.status}); update dropped.")
                return
            changes["updated_at"] = time.time()
            self.jobs[job_id] = job.model_copy(update=changes)

    # --- Reads ---

    def get_job(self, job_id: str) -> Optional[JobRecord]:
        with self._lock:
            return self.jobs.get(job_id)

    def get_progress(self, job_id: str) -> Optional[JobProgress]:
        """None means never submitted or already retired."""
        job = self.get_job(job_id)
        if job is None:
            return None
        return JobProgress(job_id=job.id, status=job.status, progress=job.progress, message=job.message)

    def get_result(self, job_id: str) -> Optional[JobRecord]:
        """The record once terminal; None while the job is unknown or still running."""
        job = self.get_job(job_id)
        if job is None or not job.is_terminal:
            return None
        return job

    # --- Retirement ---

    def retention_for(self, job_id: str) -> Optional[float]:
        job = self.get_job(job_id)
        if job is None or not job.is_terminal:
            return None
        if job.status == "succeeded":
            return settings.JOB_RETENTION_SUCCESS_SECONDS
        return settings.JOB_RETENTION_FAILURE_SECONDS

    def schedule_retirement(self, job_id: str, delay: Optional[float] = None) -> None:
        delay = self.retention_for(job_id) if delay is None else delay
        if delay is None:
            logger.warning(f"Not scheduling retirement for non-terminal job {job_id}")
            return
        timer = threading.Timer(delay, self.retire, args=(job_id,))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(job_id, None)
            self._timers[job_id] = timer
        if previous:
            previous.cancel()
        timer.start()
        logger.debug(f"Job {job_id} will be retired in {delay:.0f}s")

    def retire(self, job_id: str) -> bool:
        with self._lock:
            removed = self.jobs.pop(job_id, None)
            timer = self._timers.pop(job_id, None)
        if timer:
            timer.cancel()
        if not removed:
            return False

        result = removed.result or {}
        self.cleaner.cleanup(result.get(key) for key in self.DELIVERABLE_KEYS)
        logger.info(f"Job {job_id} retired")
        return True

    def shutdown(self) -> None:
        """Cancel pending retirement timers (process shutdown)."""
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
