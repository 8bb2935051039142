import os
import uuid
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request
from fastapi.responses import FileResponse, JSONResponse
from loguru import logger

from captioner.config import settings
from captioner.core.container import container, Services, get_caption_service, get_job_tracker
from captioner.core.errors import ValidationError
from captioner.models.schemas import CaptionRequest, JobProgress, TaskResponse

router = APIRouter(prefix="/captions", tags=["Captions"])


def _get_cleaner():
    return container.get(Services.ARTIFACT_CLEANER)


def _is_upload(value) -> bool:
    return hasattr(value, "filename") and hasattr(value, "file")


def _is_script_upload(upload) -> bool:
    content_type = (upload.content_type or "").lower()
    return content_type.startswith("text/plain") or (upload.filename or "").lower().endswith(".txt")


def _is_video_upload(upload) -> bool:
    content_type = (upload.content_type or "").lower()
    ext = Path(upload.filename or "").suffix.lower()
    return content_type.startswith("video/") or ext in settings.VIDEO_EXTENSIONS


def _save_upload(upload, dest: Path) -> str:
    """Copy an upload to disk, enforcing MAX_UPLOAD_MB."""
    limit = settings.MAX_UPLOAD_MB * 1024 * 1024
    written = 0
    with open(dest, "wb") as buffer:
        while True:
            chunk = upload.file.read(1024 * 1024)
            if not chunk:
                break
            written += len(chunk)
            if written > limit:
                break
            buffer.write(chunk)
    if written > limit:
        _get_cleaner().delete(str(dest))
        raise HTTPException(status_code=413, detail=f"Upload exceeds {settings.MAX_UPLOAD_MB} MB")
    return str(dest)


@router.post("", response_model=TaskResponse)
async def submit_caption_job(request: Request, background_tasks: BackgroundTasks):
    """
    Start a captioning job from a multipart upload (script + video + option fields).
    Returns a Job ID immediately; poll /captions/{job_id}/progress.
    """
    form = await request.form()
    script = form.get("script")
    video = form.get("video")

    if not _is_upload(script) or not _is_upload(video):
        raise HTTPException(status_code=400, detail="Both script and video files are required")
    if not _is_script_upload(script):
        raise HTTPException(status_code=400, detail="Script must be a plain text file")
    if not _is_video_upload(video):
        raise HTTPException(status_code=400, detail=f"Unsupported video file: {video.filename}")

    options = {key: value for key, value in form.items() if isinstance(value, str)}
    upload_id = uuid.uuid4().hex[:12]
    script_path = None
    video_path = None
    try:
        script_path = _save_upload(script, settings.UPLOAD_DIR / f"script-{upload_id}.txt")
        video_ext = Path(video.filename or "").suffix.lower() or ".mp4"
        video_path = _save_upload(video, settings.UPLOAD_DIR / f"video-{upload_id}{video_ext}")
        script_text = Path(script_path).read_text(encoding="utf-8-sig", errors="replace")
    except HTTPException:
        _get_cleaner().cleanup([script_path, video_path])
        raise
    except OSError as e:
        logger.error(f"Failed to store uploads: {e}")
        _get_cleaner().cleanup([script_path, video_path])
        raise HTTPException(status_code=500, detail="Failed to store uploads")

    req = CaptionRequest(
        script_text=script_text,
        video_path=video_path,
        script_path=script_path,
        options=options,
    )
    try:
        job_id = get_caption_service().submit(req, background_tasks.add_task)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return TaskResponse(job_id=job_id, status="pending", message="Job queued")


@router.get("/{job_id}/progress", response_model=JobProgress)
async def get_progress(job_id: str):
    """Current progress. 404 once a job is unknown or retired."""
    progress = get_job_tracker().get_progress(job_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return progress


@router.get("/{job_id}/result")
async def get_result(job_id: str):
    """Final payload. 202 while the job is still pending/running."""
    job = get_job_tracker().get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    if not job.is_terminal:
        return JSONResponse(
            status_code=202,
            content={"job_id": job.id, "status": job.status, "progress": job.progress, "message": job.message},
        )

    if job.status == "failed":
        return {"job_id": job.id, "status": job.status, "error": job.error.model_dump() if job.error else None}

    return {"job_id": job.id, "status": job.status, **(job.result or {})}


def _artifact_response(job_id: str, key: str, media_type: str, filename: str):
    job = get_job_tracker().get_result(job_id)
    path: Optional[str] = (job.result or {}).get(key) if job else None
    if not path or not os.path.exists(path):
        raise HTTPException(status_code=404, detail="File not available")
    return FileResponse(path=path, media_type=media_type, filename=filename)


@router.get("/{job_id}/download")
async def download_video(job_id: str):
    return _artifact_response(job_id, "output_path", "video/mp4", f"captioned-{job_id}.mp4")


@router.get("/{job_id}/preview")
async def download_preview(job_id: str):
    return _artifact_response(job_id, "preview_path", "image/gif", f"preview-{job_id}.gif")
