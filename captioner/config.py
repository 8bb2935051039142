from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # App Info
    APP_NAME: str = "Captioner Core"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 3001

    # Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent
    UPLOAD_DIR: Path = BASE_DIR / "workspace" / "uploads"        # Incoming script/video uploads
    SUBTITLE_DIR: Path = BASE_DIR / "workspace" / "subtitles"    # Generated .srt files
    PREVIEW_DIR: Path = BASE_DIR / "workspace" / "previews"      # Preview GIFs + temp palettes
    OUTPUT_DIR: Path = BASE_DIR / "output"                       # Final captioned videos
    USER_DATA_DIR: Path = BASE_DIR / "user_data"
    BIN_DIR: Path = BASE_DIR / "bin"

    # Executables
    FFMPEG_PATH: str = "ffmpeg"
    FFPROBE_PATH: str = "ffprobe"

    # Uploads
    MAX_UPLOAD_MB: int = 500
    VIDEO_EXTENSIONS: list = [".mp4", ".mov", ".avi", ".mkv", ".webm", ".flv", ".wmv", ".m4v", ".3gp"]

    # Preview GIF
    PREVIEW_SECONDS: float = 3.0
    PREVIEW_FPS: int = 10
    PREVIEW_WIDTH: int = 320

    # Final Encode
    ENCODE_CRF: int = 23
    ENCODE_PRESET: str = "medium"
    SUBTITLE_FONT_NAME: str = "Arial"
    PADDING_COLOR: str = "black"

    # Job Lifecycle
    JOB_RETENTION_SUCCESS_SECONDS: float = 300.0
    JOB_RETENTION_FAILURE_SECONDS: float = 60.0
    CLEANUP_RETRIES: int = 5
    CLEANUP_RETRY_DELAY_SECONDS: float = 1.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    def model_post_init(self, __context):
        """Auto-detect local binaries."""
        for name in ("ffmpeg", "ffmpeg.exe"):
            local_ffmpeg = self.BIN_DIR / name
            if local_ffmpeg.exists():
                self.FFMPEG_PATH = str(local_ffmpeg)
                break

        for name in ("ffprobe", "ffprobe.exe"):
            local_ffprobe = self.BIN_DIR / name
            if local_ffprobe.exists():
                self.FFPROBE_PATH = str(local_ffprobe)
                break

        self.init_dirs()

    def init_dirs(self):
        """Ensure critical directories exist."""
        for path in [self.UPLOAD_DIR, self.SUBTITLE_DIR, self.PREVIEW_DIR, self.OUTPUT_DIR, self.USER_DATA_DIR]:
            path.mkdir(parents=True, exist_ok=True)

        (self.USER_DATA_DIR / "logs").mkdir(exist_ok=True)

settings = Settings()
