"""
Upload Pipeline Unit Tests

Drives UploadPipeline directly (no HTTP layer) to check step ordering and
failure handling:

- The record is written once, after publishing
- A failing step stops the pipeline and leaves the record untouched
- Scratch files are gone before the record is written and after any failure
- Thumbnails skip inspection and transformation
- A cancelled request leaves no scratch files behind
"""

import asyncio

from io import BytesIO
from pathlib import Path
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from fastapi import UploadFile
from starlette.datastructures import Headers

from tubely.core.errors import (
    Forbidden,
    MetadataWriteFailed,
    PublishFailed,
    RecordNotFound,
    TransformFailed,
    UnsupportedMediaType,
)
from tubely.services.publishers import InMemoryPublisher
from tubely.services.upload_pipeline import UploadPipeline, get_owned_video


def make_upload(data: bytes, content_type: str, filename: str = "upload.bin") -> UploadFile:
    return UploadFile(
        file=BytesIO(data),
        filename=filename,
        size=len(data),
        headers=Headers({"content-type": content_type}),
    )


class RecordingPublisher:
    """Publisher remembering what it received and whether the record was already written."""

    def __init__(self, video_store) -> None:
        self.video_store = video_store
        self.calls: list[tuple[str, bytes, str]] = []
        self.updates_seen: list[int] = []
        self.paths_existing: list[bool] = []

    async def publish(self, body, key: str, content_type: str) -> str:
        self.calls.append((key, body.read(), content_type))
        self.updates_seen.append(len(self.video_store.updates))
        self.paths_existing.append(Path(body.name).exists())
        return f"https://cdn.example.com/{key}"


class StallingInspector:
    """Inspector that never returns, so the awaiting task can be cancelled mid-pipeline."""

    def __init__(self) -> None:
        self.paths: list[Path] = []
        self.entered = asyncio.Event()

    async def inspect(self, path: Path):
        self.paths.append(path)
        self.entered.set()
        await asyncio.Event().wait()


class FailingTransformer:
    def __init__(self) -> None:
        self.inputs: list[Path] = []

    async def transform(self, path: Path) -> Path:
        self.inputs.append(path)
        raise TransformFailed("ffmpeg failed")


@pytest.fixture
def publisher(video_store) -> RecordingPublisher:
    return RecordingPublisher(video_store)


@pytest.fixture
def pipeline(video_store, publisher, inspector, transformer, test_settings) -> UploadPipeline:
    return UploadPipeline(
        videos=video_store,
        video_publisher=publisher,
        thumbnail_publisher=publisher,
        inspector=inspector,
        transformer=transformer,
        settings=test_settings,
    )


# =============================================================================
# OWNERSHIP LOOKUP
# =============================================================================


class TestGetOwnedVideo:
    @pytest.mark.asyncio
    async def test_returns_owned_record(self, video_store, existing_video, owner_id) -> None:
        video = await get_owned_video(video_store, existing_video.id, owner_id)

        assert video.id == existing_video.id

    @pytest.mark.asyncio
    async def test_missing_record(self, video_store, owner_id) -> None:
        with pytest.raises(RecordNotFound):
            await get_owned_video(video_store, uuid4(), owner_id)

    @pytest.mark.asyncio
    async def test_foreign_record(self, video_store, existing_video, other_user_id) -> None:
        with pytest.raises(Forbidden):
            await get_owned_video(video_store, existing_video.id, other_user_id)


# =============================================================================
# SUCCESSFUL INGESTION
# =============================================================================


class TestSuccessfulIngestion:
    @pytest.mark.asyncio
    async def test_video_published_before_record_written(
        self, pipeline, publisher, video_store, existing_video, owner_id
    ) -> None:
        updated = await pipeline.upload_video(
            existing_video.id, owner_id, make_upload(b"mp4-bytes", "video/mp4")
        )

        assert publisher.updates_seen == [0]
        assert publisher.paths_existing == [True]
        assert len(video_store.updates) == 1
        key, data, content_type = publisher.calls[0]
        assert key.startswith("landscape/")
        assert data == b"mp4-bytes"
        assert content_type == "video/mp4"
        assert updated.video_url == f"https://cdn.example.com/{key}"
        assert updated.thumbnail_url is None

    @pytest.mark.asyncio
    async def test_scratch_files_removed_before_record_written(
        self, pipeline, transformer, video_store, existing_video, owner_id
    ) -> None:
        removed_at_write: list[bool] = []
        original_update = video_store.update_video

        async def checking_update(video):
            removed_at_write.append(
                not transformer.inputs[0].exists() and not transformer.outputs[0].exists()
            )
            return await original_update(video)

        video_store.update_video = checking_update

        await pipeline.upload_video(
            existing_video.id, owner_id, make_upload(b"mp4-bytes", "video/mp4")
        )

        assert removed_at_write == [True]

    @pytest.mark.asyncio
    async def test_without_transformer_inspects_staged_file(
        self, video_store, publisher, inspector, test_settings, existing_video, owner_id
    ) -> None:
        pipeline = UploadPipeline(
            videos=video_store,
            video_publisher=publisher,
            thumbnail_publisher=publisher,
            inspector=inspector,
            transformer=None,
            settings=test_settings,
        )

        await pipeline.upload_video(
            existing_video.id, owner_id, make_upload(b"mp4-bytes", "video/mp4")
        )

        assert inspector.paths[0].suffix == ".mp4"
        assert not inspector.paths[0].exists()

    @pytest.mark.asyncio
    async def test_thumbnail_skips_inspection_and_transform(
        self, pipeline, publisher, inspector, transformer, existing_video, owner_id
    ) -> None:
        updated = await pipeline.upload_thumbnail(
            existing_video.id, owner_id, make_upload(b"png-bytes", "image/png")
        )

        key, data, _ = publisher.calls[0]
        assert data == b"png-bytes"
        assert "/" not in key
        assert key.endswith(".png")
        assert inspector.paths == []
        assert transformer.inputs == []
        assert updated.thumbnail_url.endswith(key)

    @pytest.mark.asyncio
    async def test_in_memory_publisher(
        self, video_store, inspector, test_settings, blob_store, existing_video, owner_id
    ) -> None:
        memory = InMemoryPublisher(blob_store, "http://localhost:8091")
        pipeline = UploadPipeline(
            videos=video_store,
            video_publisher=memory,
            thumbnail_publisher=memory,
            inspector=inspector,
            transformer=None,
            settings=test_settings,
        )

        updated = await pipeline.upload_video(
            existing_video.id, owner_id, make_upload(b"mp4-bytes", "video/mp4")
        )

        key = updated.video_url.removeprefix("http://localhost:8091/api/blobs/")
        assert blob_store.get(key).data == b"mp4-bytes"


# =============================================================================
# FAILURES
# =============================================================================


class TestFailures:
    @pytest.mark.asyncio
    async def test_unsupported_type_stops_before_publish(
        self, pipeline, publisher, video_store, existing_video, owner_id
    ) -> None:
        with pytest.raises(UnsupportedMediaType):
            await pipeline.upload_video(
                existing_video.id, owner_id, make_upload(b"gif", "image/gif")
            )

        assert publisher.calls == []
        assert video_store.updates == []

    @pytest.mark.asyncio
    async def test_transform_failure_removes_staged_file(
        self, video_store, publisher, inspector, test_settings, existing_video, owner_id
    ) -> None:
        failing = FailingTransformer()
        pipeline = UploadPipeline(
            videos=video_store,
            video_publisher=publisher,
            thumbnail_publisher=publisher,
            inspector=inspector,
            transformer=failing,
            settings=test_settings,
        )

        with pytest.raises(TransformFailed):
            await pipeline.upload_video(
                existing_video.id, owner_id, make_upload(b"mp4-bytes", "video/mp4")
            )

        assert not failing.inputs[0].exists()
        assert inspector.paths == []
        assert publisher.calls == []
        assert video_store.updates == []

    @pytest.mark.asyncio
    async def test_publish_failure_leaves_record_untouched(
        self, pipeline, publisher, transformer, video_store, existing_video, owner_id
    ) -> None:
        publisher.publish = AsyncMock(side_effect=PublishFailed())

        with pytest.raises(PublishFailed):
            await pipeline.upload_video(
                existing_video.id, owner_id, make_upload(b"mp4-bytes", "video/mp4")
            )

        assert video_store.updates == []
        assert video_store.videos[existing_video.id].video_url is None
        assert not transformer.outputs[0].exists()

    @pytest.mark.asyncio
    async def test_metadata_write_failure_propagates(
        self, pipeline, publisher, video_store, existing_video, owner_id
    ) -> None:
        video_store.update_video = AsyncMock(side_effect=MetadataWriteFailed())

        with pytest.raises(MetadataWriteFailed):
            await pipeline.upload_thumbnail(
                existing_video.id, owner_id, make_upload(b"png-bytes", "image/png")
            )

        assert len(publisher.calls) == 1


# =============================================================================
# CANCELLATION
# =============================================================================


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_upload_removes_scratch_files(
        self, video_store, publisher, transformer, test_settings, existing_video, owner_id
    ) -> None:
        stalling = StallingInspector()
        pipeline = UploadPipeline(
            videos=video_store,
            video_publisher=publisher,
            thumbnail_publisher=publisher,
            inspector=stalling,
            transformer=transformer,
            settings=test_settings,
        )

        task = asyncio.create_task(
            pipeline.upload_video(
                existing_video.id, owner_id, make_upload(b"mp4-bytes", "video/mp4")
            )
        )
        await asyncio.wait_for(stalling.entered.wait(), timeout=5)
        assert transformer.inputs[0].exists()
        assert transformer.outputs[0].exists()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not transformer.inputs[0].exists()
        assert not transformer.outputs[0].exists()
        assert publisher.calls == []
        assert video_store.updates == []
