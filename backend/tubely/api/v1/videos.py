"""
FastAPI Video Upload Router for Tubely

Endpoints:
- POST /video_upload/{video_id} - Upload the video file (multipart field "video")
- POST /thumbnail_upload/{video_id} - Upload the thumbnail (multipart field "thumbnail")
- GET /videos/{video_id} - Read a video record owned by the caller

All endpoints require a Bearer token. Uploads are accepted only from the
record's owner; everyone else gets 403.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Request, UploadFile

from tubely.config import Settings, get_settings
from tubely.core.auth import get_current_user_id
from tubely.core.errors import MalformedRequest
from tubely.models.video import VideoResponse
from tubely.services.inspection import FFprobeInspector, MediaInspector
from tubely.services.publishers import InMemoryBlobStore, build_publisher, get_blob_store
from tubely.services.transform import FFmpegFastStartTransformer, MediaTransformer
from tubely.services.upload_pipeline import UploadPipeline, get_owned_video
from tubely.services.video_repository import VideoStore, get_video_repository


router = APIRouter()


# ============================================================================
# Dependencies
# ============================================================================


def get_media_inspector(settings: Settings = Depends(get_settings)) -> MediaInspector:
    return FFprobeInspector(
        binary=settings.ffprobe_binary, timeout=settings.media_tool_timeout_seconds
    )


def get_media_transformer(settings: Settings = Depends(get_settings)) -> MediaTransformer | None:
    if not settings.enable_faststart:
        return None
    return FFmpegFastStartTransformer(
        binary=settings.ffmpeg_binary, timeout=settings.media_tool_timeout_seconds
    )


def public_base_url(request: Request, settings: Settings) -> str:
    return settings.public_base_url or str(request.base_url).rstrip("/")


def get_upload_pipeline(
    request: Request,
    settings: Settings = Depends(get_settings),
    videos: VideoStore = Depends(get_video_repository),
    inspector: MediaInspector = Depends(get_media_inspector),
    transformer: MediaTransformer | None = Depends(get_media_transformer),
    blob_store: InMemoryBlobStore = Depends(get_blob_store),
) -> UploadPipeline:
    """Assemble the pipeline for this request from the configured publish modes."""
    base_url = public_base_url(request, settings)
    return UploadPipeline(
        videos=videos,
        video_publisher=build_publisher(
            settings.video_publish_mode, settings, base_url, blob_store=blob_store
        ),
        thumbnail_publisher=build_publisher(
            settings.thumbnail_publish_mode, settings, base_url, blob_store=blob_store
        ),
        inspector=inspector,
        transformer=transformer,
        settings=settings,
    )


def parse_video_id(video_id: str) -> UUID:
    try:
        return UUID(video_id)
    except ValueError as e:
        raise MalformedRequest("Invalid ID", details={"video_id": video_id}) from e


def require_file(upload: UploadFile | None, field: str) -> UploadFile:
    if upload is None:
        raise MalformedRequest(f"Missing form file '{field}'")
    return upload


# ============================================================================
# Endpoints
# ============================================================================


@router.post("/video_upload/{video_id}", response_model=VideoResponse)
async def upload_video(
    video_id: str,
    video: UploadFile | None = File(None, description="MP4 video file"),
    user_id: UUID = Depends(get_current_user_id),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
) -> VideoResponse:
    """
    Upload the video file for a record.

    The file must be video/mp4 and at most ``max_video_upload_bytes``. It is
    rewritten for fast start (when enabled), classified by aspect ratio and
    published under the matching key prefix.
    """
    updated = await pipeline.upload_video(
        parse_video_id(video_id), user_id, require_file(video, "video")
    )
    return VideoResponse.from_video(updated)


@router.post("/thumbnail_upload/{video_id}", response_model=VideoResponse)
async def upload_thumbnail(
    video_id: str,
    thumbnail: UploadFile | None = File(None, description="JPEG or PNG image"),
    user_id: UUID = Depends(get_current_user_id),
    pipeline: UploadPipeline = Depends(get_upload_pipeline),
) -> VideoResponse:
    """Upload the thumbnail image for a record."""
    updated = await pipeline.upload_thumbnail(
        parse_video_id(video_id), user_id, require_file(thumbnail, "thumbnail")
    )
    return VideoResponse.from_video(updated)


@router.get("/videos/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: str,
    user_id: UUID = Depends(get_current_user_id),
    videos: VideoStore = Depends(get_video_repository),
) -> VideoResponse:
    """Return a video record owned by the caller."""
    video = await get_owned_video(videos, parse_video_id(video_id), user_id)
    return VideoResponse.from_video(video)
