import contextlib

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from captioner.config import settings
from captioner.core.container import container, Services
from captioner.core.errors import CaptionError, ValidationError
from captioner.core.service_registry import register_all_services
from captioner.api.v1 import captions


def _add_file_sink() -> int:
    log_file = settings.USER_DATA_DIR / "logs" / "captioner.log"
    sink_id = logger.add(
        log_file,
        rotation="10 MB",
        retention="7 days",
        level="DEBUG",
        encoding="utf-8",
        enqueue=True,
        backtrace=True,
        diagnose=True,
    )
    logger.info(f"Logging to {log_file}")
    return sink_id


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    settings.init_dirs()
    sink_id = _add_file_sink()
    register_all_services()
    logger.info(
        f"{settings.APP_NAME} v{settings.APP_VERSION} ready "
        f"(ffmpeg={settings.FFMPEG_PATH}, ffprobe={settings.FFPROBE_PATH}, "
        f"workspace={settings.BASE_DIR})"
    )

    yield

    # Pending retirement timers die with the registry
    if container.instantiated(Services.JOB_TRACKER):
        container.get(Services.JOB_TRACKER).shutdown()
    container.reset()
    logger.info(f"{settings.APP_NAME} stopped")
    logger.remove(sink_id)


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
app.include_router(captions.router, prefix="/api/v1")

# Browser UI runs on the Vite dev server or is served from this port
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        f"http://{host}:{port}"
        for host in ("127.0.0.1", "localhost")
        for port in (5173, settings.PORT)
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


def _error_response(status_code: int, error: str, detail, code: str = None) -> JSONResponse:
    content = {"error": error, "detail": detail}
    if code:
        content["code"] = code
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(ValidationError)
async def rejected_submission_handler(request: Request, exc: ValidationError):
    logger.warning(f"Rejected {request.method} {request.url.path}: {exc.message}")
    return _error_response(400, exc.message, "Bad request", exc.code)


@app.exception_handler(CaptionError)
async def caption_error_handler(request: Request, exc: CaptionError):
    logger.error(f"[{exc.code}] {request.method} {request.url.path}: {exc.message}")
    return _error_response(500, exc.message, exc.detail, exc.code)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    logger.warning(f"Bad input on {request.method} {request.url.path}: {exc}")
    return _error_response(400, str(exc), "Bad request")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return _error_response(500, str(exc) or exc.__class__.__name__, "Internal server error")


@app.get("/health")
async def health_check():
    """Liveness probe for the UI."""
    return {"status": "online", "service": settings.APP_NAME, "version": settings.APP_VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("captioner.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)
