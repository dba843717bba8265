"""
Tubely Error Taxonomy.

Every failure the ingestion pipeline can surface is a subclass of
:class:`TubelyError`. Each class carries the HTTP status code and the stable
machine-readable error code rendered in the response envelope::

    {"error": "forbidden", "message": "...", "details": null}

Collaborator failures (botocore, jose, OS, subprocess) are translated into
these types at the seam where they occur; nothing is retried.
"""

from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse


class TubelyError(Exception):
    """Base exception for all pipeline failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "internal_error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_code, "message": self.message, "details": self.details}


# =============================================================================
# Client Errors
# =============================================================================


class MalformedRequest(TubelyError):
    """Bad identifier, bad multipart body or unparseable content-type header."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "malformed_request"
    default_message = "Malformed request"


class Unauthenticated(TubelyError):
    """Missing or invalid bearer token."""

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "unauthenticated"
    default_message = "Could not validate credentials"


class Forbidden(TubelyError):
    """Valid credentials, but the caller does not own the record."""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"
    default_message = "You do not own this video"


class RecordNotFound(TubelyError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_message = "Video not found"


class PayloadTooLarge(TubelyError):
    status_code = 413
    error_code = "payload_too_large"
    default_message = "Uploaded file exceeds the size limit"


class UnsupportedMediaType(TubelyError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    error_code = "unsupported_media_type"
    default_message = "Unsupported media type"


# =============================================================================
# Server Errors
# =============================================================================


class StorageIOError(TubelyError):
    """Scratch file could not be created, written or reopened."""

    error_code = "storage_io_error"
    default_message = "Could not stage upload"


class InspectionFailed(TubelyError):
    """ffprobe exited non-zero, timed out or produced unparseable output."""

    error_code = "inspection_failed"
    default_message = "Could not inspect media file"


class NoStreamData(TubelyError):
    error_code = "no_stream_data"
    default_message = "Media file contains no streams"


class TransformFailed(TubelyError):
    error_code = "transform_failed"
    default_message = "Could not process video for fast start"


class RandomnessUnavailable(TubelyError):
    error_code = "randomness_unavailable"
    default_message = "Could not generate storage key"


class PublishFailed(TubelyError):
    error_code = "publish_failed"
    default_message = "Could not publish file"


class MetadataWriteFailed(TubelyError):
    error_code = "metadata_write_failed"
    default_message = "Could not update video"


# =============================================================================
# FastAPI Integration
# =============================================================================


async def tubely_error_handler(request: Request, exc: TubelyError) -> JSONResponse:
    """Render a TubelyError as the JSON error envelope."""
    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


__all__ = [
    "TubelyError",
    "MalformedRequest",
    "Unauthenticated",
    "Forbidden",
    "RecordNotFound",
    "PayloadTooLarge",
    "UnsupportedMediaType",
    "StorageIOError",
    "InspectionFailed",
    "NoStreamData",
    "TransformFailed",
    "RandomnessUnavailable",
    "PublishFailed",
    "MetadataWriteFailed",
    "tubely_error_handler",
]
