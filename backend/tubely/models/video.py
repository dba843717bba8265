"""
Video Pydantic models for Tubely.

A Video is the metadata record the ingestion pipeline publishes into: it is
created by the video management surface (title, description, owner) and the
pipeline only ever fills in ``thumbnail_url`` and ``video_url``, after the
corresponding bytes have been published.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS
# =============================================================================


class AssetKind(str, Enum):
    """Kinds of files the pipeline ingests for a video record."""

    VIDEO = "video"
    THUMBNAIL = "thumbnail"


class AspectCategory(str, Enum):
    """
    Orientation derived from the first stream's dimensions.

    Values double as the storage key prefix for published videos:
    - LANDSCAPE: 16:9 (wide)
    - PORTRAIT: 9:16 (tall)
    - OTHER: anything else
    """

    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


# =============================================================================
# MODELS
# =============================================================================


class Video(BaseModel):
    """
    Video metadata record.

    Attributes:
        id: Record identifier, stored as the MongoDB _id
        user_id: Owning user's identifier
        title: Display title
        description: Free text description
        thumbnail_url: Public thumbnail reference (URL or data URL)
        video_url: Public video reference
        created_at: Creation timestamp (UTC)
        updated_at: Last modification timestamp (UTC)
    """

    id: UUID = Field(default_factory=uuid4, alias="_id", description="Video ID")
    user_id: UUID = Field(..., description="Owning user's ID")
    title: str = Field(default="", max_length=500, description="Video title")
    description: str = Field(default="", max_length=5000, description="Video description")
    thumbnail_url: str | None = Field(default=None, description="Public thumbnail reference")
    video_url: str | None = Field(default=None, description="Public video reference")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp (UTC)"
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Last modification timestamp (UTC)"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "_id": "0f8fad5b-d9cb-469f-a165-70867728950e",
                "user_id": "7c9e6679-7425-40de-944b-e07fc1f90ae7",
                "title": "Boots",
                "description": "A short clip about boots",
                "thumbnail_url": "http://localhost:8091/assets/3q2-7w.png",
                "video_url": "https://d111.cloudfront.net/landscape/kq1cWd5H.mp4",
            }
        },
    )

    def is_owned_by(self, user_id: UUID) -> bool:
        return self.user_id == user_id

    def with_reference(self, kind: AssetKind, url: str) -> "Video":
        """
        Return a copy of this record with the asset reference replaced.

        The original instance is left untouched so a failed metadata write
        never leaves a half-updated record in memory.
        """
        field = "video_url" if kind == AssetKind.VIDEO else "thumbnail_url"
        return self.model_copy(update={field: url, "updated_at": datetime.now(UTC)})


class VideoResponse(BaseModel):
    """Schema for video API responses."""

    id: UUID = Field(..., description="Video ID")
    user_id: UUID = Field(..., description="Owner user ID")
    title: str = Field(..., description="Video title")
    description: str = Field(..., description="Video description")
    thumbnail_url: str | None = Field(None, description="Public thumbnail reference")
    video_url: str | None = Field(None, description="Public video reference")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @classmethod
    def from_video(cls, video: Video) -> "VideoResponse":
        return cls(
            id=video.id,
            user_id=video.user_id,
            title=video.title,
            description=video.description,
            thumbnail_url=video.thumbnail_url,
            video_url=video.video_url,
            created_at=video.created_at,
            updated_at=video.updated_at,
        )
