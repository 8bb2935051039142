"""
Service container for the caption service.

Factories are registered once at startup; each service is built on first
lookup and then shared for the life of the process (or until reset()).
"""
from typing import TYPE_CHECKING, Any, Callable, Dict, List

from loguru import logger

if TYPE_CHECKING:
    from captioner.services.caption_service import CaptionService
    from captioner.services.job_tracker import JobTracker


class ServiceContainer:
    """
    Name -> lazily built singleton.

        container.register(Services.JOB_TRACKER, JobTracker)
        tracker = container.get(Services.JOB_TRACKER)

    Tests swap a live instance in with override(); reset() drops every
    instance but keeps the factories.
    """

    def __init__(self):
        self._factories: Dict[str, Callable[[], Any]] = {}
        self._instances: Dict[str, Any] = {}

    def register(self, name: str, factory: Callable[[], Any]) -> None:
        self._factories[name] = factory
        logger.debug(f"[Container] Registered {name}")

    def get(self, name: str) -> Any:
        """Build on first use. KeyError for names never registered or overridden."""
        if name in self._instances:
            return self._instances[name]
        factory = self._factories.get(name)
        if factory is None:
            raise KeyError(f"Service '{name}' not registered. Available: {self.registered()}")
        instance = self._instances[name] = factory()
        logger.debug(f"[Container] Built {name}")
        return instance

    def has(self, name: str) -> bool:
        return name in self._factories

    def instantiated(self, name: str) -> bool:
        return name in self._instances

    def registered(self) -> List[str]:
        return sorted(self._factories)

    def override(self, name: str, instance: Any) -> None:
        self._instances[name] = instance
        logger.debug(f"[Container] Overrode {name}")

    def reset(self) -> None:
        self._instances.clear()
        logger.debug("[Container] Instances cleared")


container = ServiceContainer()


class Services:
    JOB_TRACKER = "job_tracker"
    JOB_RUNNER = "job_runner"
    CAPTION_SERVICE = "caption_service"
    CAPTION_PIPELINE = "caption_pipeline"
    MEDIA_PROBER = "media_prober"
    MEDIA_INVOKER = "media_invoker"
    ARTIFACT_CLEANER = "artifact_cleaner"


def get_job_tracker() -> "JobTracker":
    return container.get(Services.JOB_TRACKER)


def get_caption_service() -> "CaptionService":
    return container.get(Services.CAPTION_SERVICE)
