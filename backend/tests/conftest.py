"""
Pytest Configuration and Test Fixtures for the Tubely Backend

This module provides the fixtures shared by the test suite:
- Test Settings with in-memory publishing and small upload ceilings
- Bearer tokens for an owner and for a second, unrelated user
- A dict-backed video store standing in for MongoDB
- Fake media inspector and fast-start transformer (no ffprobe/ffmpeg needed)
- FastAPI TestClient with dependency overrides

Startup handlers are not run (the client is not used as a context manager),
so no MongoDB connection is attempted.
"""

import os
import shutil
import tempfile

from collections.abc import Generator
from pathlib import Path
from uuid import UUID, uuid4

import pytest

# Configure the environment before the application module is imported
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("ASSETS_ROOT", tempfile.mkdtemp(prefix="tubely-assets-"))

from fastapi.testclient import TestClient  # noqa: E402

from tubely.api.v1.videos import get_media_inspector, get_media_transformer  # noqa: E402
from tubely.config import Settings, get_settings  # noqa: E402
from tubely.core.auth import create_access_token  # noqa: E402
from tubely.core.errors import RecordNotFound  # noqa: E402
from tubely.main import app  # noqa: E402
from tubely.models.video import Video  # noqa: E402
from tubely.services.inspection import StreamInfo  # noqa: E402
from tubely.services.publishers import InMemoryBlobStore, get_blob_store  # noqa: E402
from tubely.services.transform import PROCESSING_SUFFIX  # noqa: E402
from tubely.services.video_repository import get_video_repository  # noqa: E402


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: mark test as unit test")
    config.addinivalue_line("markers", "integration: mark test as integration test")


# ==============================================================================
# Test Doubles
# ==============================================================================


class FakeVideoStore:
    """Dict-backed VideoStore recording every successful update."""

    def __init__(self) -> None:
        self.videos: dict[UUID, Video] = {}
        self.updates: list[Video] = []

    def add(self, video: Video) -> Video:
        self.videos[video.id] = video
        return video

    async def get_video(self, video_id: UUID) -> Video | None:
        video = self.videos.get(video_id)
        return video.model_copy() if video is not None else None

    async def update_video(self, video: Video) -> Video:
        if video.id not in self.videos:
            raise RecordNotFound()
        self.videos[video.id] = video
        self.updates.append(video)
        return video


class FakeInspector:
    """MediaInspector returning fixed dimensions and recording inspected paths."""

    def __init__(self, width: int = 1920, height: int = 1080) -> None:
        self.width = width
        self.height = height
        self.paths: list[Path] = []
        self.existed: list[bool] = []

    async def inspect(self, path: Path) -> StreamInfo:
        self.paths.append(path)
        self.existed.append(path.exists())
        return StreamInfo(width=self.width, height=self.height, codec_type="video")


class FakeTransformer:
    """MediaTransformer that copies the input to ``<input>.processing``."""

    def __init__(self) -> None:
        self.inputs: list[Path] = []
        self.outputs: list[Path] = []

    async def transform(self, path: Path) -> Path:
        output = path.with_name(path.name + PROCESSING_SUFFIX)
        shutil.copyfile(path, output)
        self.inputs.append(path)
        self.outputs.append(output)
        return output


# ==============================================================================
# Settings and Identity Fixtures
# ==============================================================================


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings publishing both asset kinds to the in-memory store."""
    return Settings(
        app_env="testing",
        debug=True,
        secret_key="test-secret-key-for-jwt-signing-minimum-32-chars",
        mongodb_uri="mongodb://localhost:27017/test_tubely",
        mongodb_db_name="test_tubely",
        s3_bucket_name="test-bucket",
        s3_region="us-east-1",
        video_publish_mode="memory",
        thumbnail_publish_mode="memory",
        assets_root=str(tmp_path / "assets"),
        public_base_url="http://testserver",
        max_video_upload_bytes=64 * 1024,
        max_thumbnail_upload_bytes=16 * 1024,
        upload_chunk_size=1024,
        enable_faststart=True,
    )


@pytest.fixture
def owner_id() -> UUID:
    return uuid4()


@pytest.fixture
def other_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def owner_token(test_settings: Settings, owner_id: UUID) -> str:
    return create_access_token(owner_id, test_settings)


@pytest.fixture
def other_user_token(test_settings: Settings, other_user_id: UUID) -> str:
    return create_access_token(other_user_id, test_settings)


@pytest.fixture
def auth_headers(owner_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {owner_token}"}


# ==============================================================================
# Collaborator Fixtures
# ==============================================================================


@pytest.fixture
def video_store() -> FakeVideoStore:
    return FakeVideoStore()


@pytest.fixture
def existing_video(video_store: FakeVideoStore, owner_id: UUID) -> Video:
    """A record owned by ``owner_id`` with no published references yet."""
    return video_store.add(Video(user_id=owner_id, title="Boots", description="A clip"))


@pytest.fixture
def inspector() -> FakeInspector:
    return FakeInspector()


@pytest.fixture
def transformer() -> FakeTransformer:
    return FakeTransformer()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


# ==============================================================================
# Client Fixtures
# ==============================================================================


@pytest.fixture
def test_client(
    test_settings: Settings,
    video_store: FakeVideoStore,
    inspector: FakeInspector,
    transformer: FakeTransformer,
    blob_store: InMemoryBlobStore,
) -> Generator[TestClient, None, None]:
    """
    TestClient with every external collaborator replaced by a test double.

    Overrides are removed after the test.
    """
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_video_repository] = lambda: video_store
    app.dependency_overrides[get_media_inspector] = lambda: inspector
    app.dependency_overrides[get_media_transformer] = lambda: transformer
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    yield TestClient(app)

    app.dependency_overrides.clear()
