import os
import time
from typing import Callable, Iterable, List, Optional
from loguru import logger
from captioner.config import settings
from captioner.core.errors import CleanupFailed


class ArtifactCleaner:
    """
    Deletes intermediate files with bounded retries.

    ffmpeg may still hold a handle for a moment after it exits (notably on
    Windows), so a failed delete is retried a fixed number of times. Running
    out of retries is logged and reported back, never raised.
    """

    def __init__(self, retries: Optional[int] = None, delay: Optional[float] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.retries = settings.CLEANUP_RETRIES if retries is None else max(1, retries)
        self.delay = settings.CLEANUP_RETRY_DELAY_SECONDS if delay is None else max(0.0, delay)
        self._sleep = sleep

    def delete(self, path: Optional[str]) -> bool:
        """Returns True once `path` is gone (or never existed)."""
        return self._delete(path) is None

    def cleanup(self, paths: Iterable[Optional[str]]) -> List[CleanupFailed]:
        failures = []
        for path in paths:
            failure = self._delete(path)
            if failure is not None:
                failures.append(failure)
        return failures

    def _delete(self, path: Optional[str]) -> Optional[CleanupFailed]:
        if not path:
            return None

        last_error = None
        for attempt in range(1, self.retries + 1):
            try:
                os.remove(path)
                logger.debug(f"Deleted artifact: {path}")
                return None
            except FileNotFoundError:
                return None
            except OSError as e:
                last_error = e
                logger.debug(f"Delete attempt {attempt}/{self.retries} failed for {path}: {e}")
                if attempt < self.retries:
                    self._sleep(self.delay)

        failure = CleanupFailed(path, last_error)
        logger.warning(f"{failure.message} after {self.retries} attempts: {last_error}")
        return failure
