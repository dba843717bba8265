"""
Tubely Upload Pipeline Module

Orchestrates one upload request end to end:

    authorize -> validate -> stage -> [transform] -> classify -> key -> publish -> record

Each step is a single collaborator call and any failure ends the request
with the step's TubelyError; nothing after it runs. Scratch files (the staged
upload and the fast-start output) are scoped to the request and are gone by
the time the metadata record is written. The record is written once, only
after the bytes have been published.

Videos are transformed (when enabled), classified by aspect ratio, and
published under ``{landscape|portrait|other}/{token}.mp4``. Thumbnails skip
both steps and are published as ``{token}.{png|jpeg}``.
"""

import contextlib
import logging

from collections.abc import AsyncIterator
from pathlib import Path
from uuid import UUID

from fastapi import UploadFile

from tubely.config import Settings
from tubely.core.errors import Forbidden, RecordNotFound, StorageIOError, TubelyError
from tubely.models.video import AspectCategory, AssetKind, Video
from tubely.services.inspection import MediaInspector
from tubely.services.keys import build_storage_key
from tubely.services.publishers import Publisher
from tubely.services.staging import staged_upload
from tubely.services.transform import MediaTransformer, transformed
from tubely.services.video_repository import VideoStore
from tubely.utils.file_validator import (
    extension_for_media_type,
    raise_file_too_large_error,
    require_media_type,
    validate_file_size,
)
from tubely.utils.logger import add_log_context


logger = logging.getLogger(__name__)


async def get_owned_video(videos: VideoStore, video_id: UUID, user_id: UUID) -> Video:
    """
    Fetch a record and check that ``user_id`` owns it.

    Raises:
        RecordNotFound: If no record has ``video_id``.
        Forbidden: If the record belongs to another user.
    """
    video = await videos.get_video(video_id)
    if video is None:
        raise RecordNotFound("Couldn't find video", details={"video_id": str(video_id)})
    if not video.is_owned_by(user_id):
        raise Forbidden("Not authorized to update this video")
    return video


class UploadPipeline:
    """
    Media ingestion pipeline for video and thumbnail uploads.

    Attributes:
        videos: Metadata store holding video records
        video_publisher: Destination for video files
        thumbnail_publisher: Destination for thumbnail images
        inspector: Reads stream dimensions of staged videos
        transformer: Optional fast-start rewrite applied before classification
        settings: Application settings (size ceilings, chunk size)

    Example:
        ```python
        pipeline = UploadPipeline(
            videos=VideoRepository(collection),
            video_publisher=S3Publisher.cloudfront(storage, settings),
            thumbnail_publisher=LocalFilesystemPublisher("assets", "http://localhost:8091"),
            inspector=FFprobeInspector(),
            transformer=FFmpegFastStartTransformer(),
            settings=settings,
        )
        video = await pipeline.upload_video(video_id, user_id, upload_file)
        ```
    """

    def __init__(
        self,
        videos: VideoStore,
        video_publisher: Publisher,
        thumbnail_publisher: Publisher,
        inspector: MediaInspector,
        transformer: MediaTransformer | None,
        settings: Settings,
    ) -> None:
        self.videos = videos
        self.video_publisher = video_publisher
        self.thumbnail_publisher = thumbnail_publisher
        self.inspector = inspector
        self.transformer = transformer
        self.settings = settings
        self.logger = logger

    # =========================================================================
    # Public API
    # =========================================================================

    async def upload_video(self, video_id: UUID, user_id: UUID, upload: UploadFile) -> Video:
        """Ingest a video file for ``video_id`` and return the updated record."""
        return await self._ingest(AssetKind.VIDEO, video_id, user_id, upload)

    async def upload_thumbnail(self, video_id: UUID, user_id: UUID, upload: UploadFile) -> Video:
        """Ingest a thumbnail image for ``video_id`` and return the updated record."""
        return await self._ingest(AssetKind.THUMBNAIL, video_id, user_id, upload)

    # =========================================================================
    # Steps
    # =========================================================================

    def _max_bytes(self, kind: AssetKind) -> int:
        if kind == AssetKind.VIDEO:
            return self.settings.max_video_upload_bytes
        return self.settings.max_thumbnail_upload_bytes

    def _publisher(self, kind: AssetKind) -> Publisher:
        return self.video_publisher if kind == AssetKind.VIDEO else self.thumbnail_publisher

    def _validate(self, kind: AssetKind, upload: UploadFile) -> str:
        media_type = require_media_type(upload.content_type, kind)
        max_bytes = self._max_bytes(kind)
        size_check = validate_file_size(getattr(upload, "size", None), max_bytes)
        if not size_check["is_valid"]:
            raise_file_too_large_error(max_bytes, size_check["file_size"])
        return media_type

    @contextlib.asynccontextmanager
    async def _final_file(self, kind: AssetKind, staged_path: Path) -> AsyncIterator[Path]:
        """Yield the file to classify and publish: the fast-start copy for videos when enabled."""
        if kind != AssetKind.VIDEO or self.transformer is None:
            yield staged_path
            return
        async with transformed(self.transformer, staged_path) as output:
            yield output

    async def _publish(self, kind: AssetKind, path: Path, key: str, media_type: str) -> str:
        try:
            body = path.open("rb")
        except OSError as e:
            raise StorageIOError("Couldn't reopen staged file", details={"path": str(path)}) from e
        with body:
            return await self._publisher(kind).publish(body, key, media_type)

    async def _ingest(
        self, kind: AssetKind, video_id: UUID, user_id: UUID, upload: UploadFile
    ) -> Video:
        ctx_logger = add_log_context(
            self.logger, video_id=str(video_id), user_id=str(user_id), asset_kind=kind.value
        )
        ctx_logger.info("Upload started", extra={"upload_filename": upload.filename})

        try:
            video = await get_owned_video(self.videos, video_id, user_id)
            media_type = self._validate(kind, upload)

            async with staged_upload(
                upload,
                media_type,
                max_bytes=self._max_bytes(kind),
                chunk_size=self.settings.upload_chunk_size,
                suffix=f".{extension_for_media_type(media_type)}",
            ) as staged:
                ctx_logger.debug("Upload staged", extra={"size": staged.size})

                async with self._final_file(kind, staged.path) as final_path:
                    category: AspectCategory | None = None
                    if kind == AssetKind.VIDEO:
                        info = await self.inspector.inspect(final_path)
                        category = info.aspect_category
                        ctx_logger.debug(
                            "Classified video",
                            extra={
                                "width": info.width,
                                "height": info.height,
                                "category": category.value,
                            },
                        )

                    key = build_storage_key(media_type, category)
                    url = await self._publish(kind, final_path, key, media_type)
                    ctx_logger.info("Published upload", extra={"key": key})

            updated = await self.videos.update_video(video.with_reference(kind, url))
        except TubelyError as e:
            ctx_logger.warning(
                "Upload failed: %s", e.message, extra={"error_code": e.error_code}
            )
            raise

        ctx_logger.info("Video record updated")
        return updated
