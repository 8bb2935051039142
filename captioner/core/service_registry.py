"""
Service Registration: single place to import and register all services.
"""

from captioner.core.container import container, Services


def register_all_services():
    """Import and register every service in the DI container."""

    # ── Core ─────────────────────────────────────────────────
    from captioner.services.job_tracker import JobTracker
    from captioner.services.artifact_cleaner import ArtifactCleaner

    container.register(Services.JOB_TRACKER, lambda: JobTracker(container.get(Services.ARTIFACT_CLEANER)))
    container.register(Services.ARTIFACT_CLEANER, ArtifactCleaner)

    # ── Media ────────────────────────────────────────────────
    from captioner.services.video.media_prober import MediaProber
    from captioner.services.video.media_invoker import MediaInvoker
    from captioner.services.caption_pipeline import CaptionPipeline

    container.register(Services.MEDIA_PROBER, MediaProber)
    container.register(Services.MEDIA_INVOKER, lambda: MediaInvoker(container.get(Services.ARTIFACT_CLEANER)))
    container.register(Services.CAPTION_PIPELINE, lambda: CaptionPipeline(
        prober=container.get(Services.MEDIA_PROBER),
        invoker=container.get(Services.MEDIA_INVOKER),
        cleaner=container.get(Services.ARTIFACT_CLEANER),
    ))

    # ── Jobs ─────────────────────────────────────────────────
    from captioner.core.job_runner import JobRunner
    from captioner.services.caption_service import CaptionService

    container.register(Services.JOB_RUNNER, lambda: JobRunner(
        container.get(Services.JOB_TRACKER),
        container.get(Services.CAPTION_PIPELINE),
    ))
    container.register(Services.CAPTION_SERVICE, lambda: CaptionService(
        container.get(Services.JOB_TRACKER),
        container.get(Services.JOB_RUNNER),
        container.get(Services.ARTIFACT_CLEANER),
    ))
