import pytest
from fastapi.testclient import TestClient
from captioner.main import app
from captioner.config import settings
from captioner.core.container import container, Services
from captioner.models.schemas import MediaInfo
from captioner.services.artifact_cleaner import ArtifactCleaner
from captioner.services.job_tracker import JobTracker
from captioner.utils.options import parse_processing_options
from unittest.mock import MagicMock


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Point every working directory at a throwaway tree."""
    for name in ("UPLOAD_DIR", "SUBTITLE_DIR", "PREVIEW_DIR", "OUTPUT_DIR", "USER_DATA_DIR"):
        path = tmp_path / name.lower()
        path.mkdir()
        monkeypatch.setattr(settings, name, path)
    return tmp_path


@pytest.fixture
def client(workspace):
    """FastAPI test client fixture. Entering the context runs the lifespan."""
    with TestClient(app) as c:
        yield c
    container.reset()


@pytest.fixture
def mock_pipeline():
    """Mock for CaptionPipeline; must be installed before the first submission."""
    mock = MagicMock()
    container.override(Services.CAPTION_PIPELINE, mock)
    yield mock
    container.reset()


@pytest.fixture
def tracker():
    t = JobTracker()
    yield t
    t.shutdown()


@pytest.fixture
def fast_cleaner():
    return ArtifactCleaner(retries=3, delay=0, sleep=lambda _: None)


@pytest.fixture
def default_options():
    return parse_processing_options({})


@pytest.fixture
def media_5s():
    return MediaInfo(duration_seconds=5.0, width=1280, height=720, has_audio=True)
