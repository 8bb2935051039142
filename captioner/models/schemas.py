from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


# ─── Subtitles ───────────────────────────────────────────────────

class SubtitleCue(BaseModel):
    """A single timed subtitle entry. Times are in seconds."""
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=1)
    text: str = Field(..., min_length=1)
    start: float = Field(..., ge=0)
    end: float
    duration_seconds: float


class ProcessingOptions(BaseModel):
    """Fully validated options. Build it with utils.options.parse_processing_options."""
    model_config = ConfigDict(frozen=True)

    base_duration_seconds: float = Field(3.0, ge=0.1, le=10)
    per_word_seconds: float = Field(0.3, ge=0.1, le=2)
    font_color: str = "#EC4899"
    font_weight: Literal["normal", "bold"] = "bold"
    font_size_px: int = Field(24, ge=12, le=48)
    position: Literal["top", "center", "bottom"] = "bottom"


# ─── Media ───────────────────────────────────────────────────────

class MediaInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    duration_seconds: float
    width: int
    height: int
    has_audio: bool = False


class ReconcilePlan(BaseModel):
    """How script and video durations were reconciled for the final encode."""
    model_config = ConfigDict(frozen=True)

    policy: Literal["pad", "truncate"]
    window_seconds: float
    padding_seconds: float = 0.0
    script_duration_seconds: float
    video_duration_seconds: float
    cues: List[SubtitleCue]


# ─── Jobs ────────────────────────────────────────────────────────

JobStatus = Literal["pending", "running", "succeeded", "failed"]


class JobError(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class JobRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    status: JobStatus = "pending"
    progress: int = 0
    message: str = "Queued"
    created_at: float
    updated_at: float
    finished_at: Optional[float] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[JobError] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("succeeded", "failed")


class JobProgress(BaseModel):
    job_id: str
    status: JobStatus
    progress: int
    message: str


class CaptionResult(BaseModel):
    success: bool = True
    duration: str
    duration_seconds: float
    subtitles_count: int
    subtitles: List[SubtitleCue]
    policy: Literal["pad", "truncate"]
    padding_seconds: float = 0.0
    preview_path: str
    output_path: str
    preview_url: str
    download_url: str
    cleanup_warnings: List[str] = []


# ─── Requests / Responses ────────────────────────────────────────

class CaptionRequest(BaseModel):
    """What the upload intake hands to the core."""
    script_text: str
    video_path: str
    script_path: Optional[str] = None
    options: Dict[str, Any] = {}


class CaptionJob(BaseModel):
    """A validated submission, ready for the background pipeline."""
    job_id: str
    cues: List[SubtitleCue]
    options: ProcessingOptions
    video_path: str
    script_path: Optional[str] = None


class TaskResponse(BaseModel):
    job_id: str
    status: JobStatus
    message: Optional[str] = None
