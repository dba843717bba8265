"""
Models Package for Tubely.

Pydantic models for video metadata records and the enums shared by the
ingestion pipeline. Records are stored in MongoDB with the video ID as _id.

Example Usage:
    ```python
    from uuid import uuid4
    from tubely.models import Video, AssetKind

    video = Video(user_id=uuid4(), title="Boots")
    updated = video.with_reference(AssetKind.VIDEO, "https://cdn.example/landscape/x.mp4")
    ```
"""

from tubely.models.video import AspectCategory, AssetKind, Video, VideoResponse


__all__ = [
    "AspectCategory",
    "AssetKind",
    "Video",
    "VideoResponse",
]
