"""
Error taxonomy for caption jobs.

Hard errors abort a job and end up as its terminal error payload.
CleanupFailed is soft: it is logged and reported, never raised out of a job.
"""
from typing import Optional


class CaptionError(Exception):
    """Base class for every failure the caption pipeline reports."""

    code = "CaptionError"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_payload(self) -> dict:
        return {"code": self.code, "message": self.message, "detail": self.detail}


# ─── Submission ──────────────────────────────────────────────────

class ValidationError(CaptionError):
    """Bad submission. Raised before a job exists."""
    code = "ValidationError"


class EmptyScript(ValidationError):
    code = "EmptyScript"

    def __init__(self, message: str = "No valid subtitles found in script"):
        super().__init__(message)


# ─── Probing ─────────────────────────────────────────────────────

class MediaProbeError(CaptionError):
    code = "MediaProbeError"


class ProbeFailed(MediaProbeError):
    code = "ProbeFailed"


class NoVideoStream(MediaProbeError):
    code = "NoVideoStream"


class MissingProperties(MediaProbeError):
    code = "MissingProperties"


# ─── External media tool ─────────────────────────────────────────

class MediaToolError(CaptionError):
    """An ffmpeg invocation exited unsuccessfully. `detail` holds its stderr tail."""
    code = "MediaToolError"

    def __init__(self, message: str, detail: Optional[str] = None, returncode: Optional[int] = None):
        super().__init__(message, detail)
        self.returncode = returncode


class PreviewGenerationFailed(MediaToolError):
    code = "PreviewGenerationFailed"


class EncodeFailed(MediaToolError):
    code = "EncodeFailed"


# ─── Cleanup (soft) ──────────────────────────────────────────────

class CleanupFailed(CaptionError):
    code = "CleanupFailed"

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(f"Failed to delete {path}", repr(cause) if cause else None)
        self.path = path
        self.cause = cause
