"""
Video metadata repository backed by the MongoDB ``videos`` collection.

Records are keyed by their UUID (stored as the BSON UUID ``_id``). The
ingestion pipeline reads a record to authorize the caller and writes it back
exactly once, after the upload has been published.
"""

import logging

from typing import Any, Protocol
from uuid import UUID

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import PyMongoError

from tubely.core.database import get_db_client
from tubely.core.errors import MetadataWriteFailed, RecordNotFound, TubelyError
from tubely.models.video import Video


logger = logging.getLogger(__name__)

# Fields the pipeline is allowed to change on an existing record
MUTABLE_FIELDS = ("thumbnail_url", "video_url", "updated_at")


class VideoStore(Protocol):
    async def get_video(self, video_id: UUID) -> Video | None: ...

    async def update_video(self, video: Video) -> Video: ...


class VideoRepository:
    """
    Async access to video records.

    Example:
        ```python
        repo = VideoRepository(get_db_client().get_videos_collection())
        video = await repo.get_video(video_id)
        ```
    """

    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self.collection = collection

    @staticmethod
    def _to_video(document: dict[str, Any]) -> Video:
        return Video.model_validate(document)

    async def get_video(self, video_id: UUID) -> Video | None:
        """
        Fetch a record by ID.

        Returns:
            Video | None: The record, or None if no record has that ID.
        """
        try:
            document = await self.collection.find_one({"_id": video_id})
        except PyMongoError as e:
            logger.exception("Failed to fetch video %s", video_id)
            raise TubelyError("Couldn't get video") from e
        if document is None:
            return None
        return self._to_video(document)

    async def create_video(self, video: Video) -> Video:
        try:
            await self.collection.insert_one(video.model_dump(by_alias=True))
        except PyMongoError as e:
            logger.exception("Failed to create video %s", video.id)
            raise MetadataWriteFailed("Couldn't create video") from e
        logger.info("Created video record", extra={"video_id": str(video.id)})
        return video

    async def update_video(self, video: Video) -> Video:
        """
        Persist the mutable reference fields of ``video``.

        Only the URL fields and ``updated_at`` are written, so concurrent
        updates of other fields are not clobbered. Concurrent writes of the
        same field resolve as last writer wins.

        Raises:
            RecordNotFound: If the record disappeared since it was read.
            MetadataWriteFailed: On any database error.
        """
        changes = video.model_dump(include=set(MUTABLE_FIELDS))
        try:
            result = await self.collection.update_one({"_id": video.id}, {"$set": changes})
        except PyMongoError as e:
            logger.exception("Failed to update video %s", video.id)
            raise MetadataWriteFailed() from e

        if result.matched_count == 0:
            raise RecordNotFound()
        logger.info(
            "Updated video record",
            extra={"video_id": str(video.id), "fields": sorted(changes)},
        )
        return video


def get_video_repository() -> VideoRepository:
    """FastAPI dependency returning a repository over the global database client."""
    return VideoRepository(get_db_client().get_videos_collection())
