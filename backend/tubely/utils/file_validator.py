"""
File Validation Utilities Module for Tubely

Checks applied to an uploaded file before any byte of it touches scratch
storage:
- Content-Type header parsing (malformed headers are a client error)
- Media type allow-lists per asset kind
- Size ceilings per asset kind, checked against the declared part size

The ceiling is enforced a second time while the stream is being copied (see
``tubely.services.staging``), since the declared size can be absent or wrong.
"""

from typing import Any

from python_multipart.multipart import parse_options_header

from tubely.core.errors import MalformedRequest, PayloadTooLarge, UnsupportedMediaType
from tubely.models.video import AssetKind


# =============================================================================
# CONSTANTS
# =============================================================================

BYTES_PER_KB: int = 1024

# Allowed media types per asset kind. Matching is exact after parameters
# (e.g. "; charset=...") are stripped and the type is lower-cased.
ALLOWED_MEDIA_TYPES: dict[AssetKind, frozenset[str]] = {
    AssetKind.VIDEO: frozenset({"video/mp4"}),
    AssetKind.THUMBNAIL: frozenset({"image/jpeg", "image/png"}),
}


# =============================================================================
# MEDIA TYPE VALIDATION
# =============================================================================


def parse_media_type(content_type: str | None) -> tuple[str, dict[str, str]]:
    """
    Parse a Content-Type header value into a media type and parameters.

    Args:
        content_type: Raw header value, e.g. "image/png; charset=binary"

    Returns:
        Tuple of (lower-cased "type/subtype", parameters dict)

    Raises:
        MalformedRequest: If the header is missing or not a valid media type.

    Example:
        >>> parse_media_type("Video/MP4")
        ("video/mp4", {})
    """
    if not content_type or not content_type.strip():
        raise MalformedRequest("Missing Content-Type for uploaded file")

    raw_type, raw_params = parse_options_header(content_type)
    media_type = raw_type.decode("latin-1").strip().lower()

    main_type, _, subtype = media_type.partition("/")
    if (
        not main_type
        or not subtype
        or "/" in subtype
        or any(ch.isspace() for ch in media_type)
    ):
        raise MalformedRequest("Invalid Content-Type", details={"content_type": content_type})

    params: dict[str, str] = {}
    for key, value in raw_params.items():
        name = key.decode("latin-1").strip().lower()
        if not name:
            raise MalformedRequest(
                "Invalid Content-Type parameter", details={"content_type": content_type}
            )
        params[name] = value.decode("latin-1")

    return media_type, params


def validate_media_type(media_type: str, kind: AssetKind) -> dict[str, Any]:
    """
    Check a parsed media type against the allow-list for an asset kind.

    Returns:
        Dictionary with validation results:
        - is_valid: True if the type is allowed
        - error: Human-readable error message or None if valid
        - media_type: The media type that was checked
        - allowed: Sorted list of allowed media types
    """
    allowed = ALLOWED_MEDIA_TYPES[kind]
    result: dict[str, Any] = {
        "is_valid": True,
        "error": None,
        "media_type": media_type,
        "allowed": sorted(allowed),
    }
    if media_type not in allowed:
        result["is_valid"] = False
        result["error"] = (
            f"Invalid file type '{media_type}' for {kind.value}. "
            f"Allowed types: {', '.join(sorted(allowed))}"
        )
    return result


def require_media_type(content_type: str | None, kind: AssetKind) -> str:
    """
    Parse and validate the declared content type of an upload.

    Returns:
        The normalized media type.

    Raises:
        MalformedRequest: If the header cannot be parsed.
        UnsupportedMediaType: If the type is outside the allow-list.
    """
    media_type, _ = parse_media_type(content_type)
    result = validate_media_type(media_type, kind)
    if not result["is_valid"]:
        raise_unsupported_type_error(media_type, result["allowed"])
    return media_type


def extension_for_media_type(media_type: str) -> str:
    """
    Derive a file extension from a media type's subtype.

    Example:
        >>> extension_for_media_type("image/jpeg")
        "jpeg"
    """
    _, _, subtype = media_type.partition("/")
    if not subtype:
        raise MalformedRequest(f"Cannot derive extension from media type '{media_type}'")
    return subtype.split("+", 1)[0].lower()


# =============================================================================
# FILE SIZE VALIDATION
# =============================================================================


def validate_file_size(file_size: int | None, max_size: int) -> dict[str, Any]:
    """
    Validate a declared file size against a ceiling.

    An unknown size (None) passes; the copy-time cap still applies.

    Returns:
        Dictionary with validation results:
        - is_valid: True if size is within limit, False otherwise
        - error: Human-readable error message or None if valid
        - file_size: The original file size that was validated
        - max_size: The maximum size that was used for validation
    """
    result: dict[str, Any] = {
        "is_valid": True,
        "error": None,
        "file_size": file_size,
        "max_size": max_size,
    }

    if file_size is None:
        return result

    if file_size < 0:
        result["is_valid"] = False
        result["error"] = "Invalid file size: cannot be negative"
        return result

    if file_size > max_size:
        result["is_valid"] = False
        result["error"] = (
            f"File size ({format_file_size(file_size)}) exceeds maximum allowed "
            f"({format_file_size(max_size)})"
        )

    return result


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable string.

    Example:
        >>> format_file_size(1048576)
        "1.00 MB"
    """
    if size_bytes < 0:
        return "Invalid size"

    bytes_per_mb = BYTES_PER_KB * BYTES_PER_KB
    bytes_per_gb = bytes_per_mb * BYTES_PER_KB

    if size_bytes < BYTES_PER_KB:
        return f"{size_bytes} B"
    if size_bytes < bytes_per_mb:
        return f"{size_bytes / BYTES_PER_KB:.2f} KB"
    if size_bytes < bytes_per_gb:
        return f"{size_bytes / bytes_per_mb:.2f} MB"
    return f"{size_bytes / bytes_per_gb:.2f} GB"


# =============================================================================
# EXCEPTION HELPERS
# =============================================================================


def raise_file_too_large_error(max_size: int, file_size: int | None = None) -> None:
    """
    Raise PayloadTooLarge (HTTP 413).

    Raises:
        PayloadTooLarge: Always.
    """
    detail = f"File exceeds maximum allowed size ({format_file_size(max_size)})"
    if file_size is not None:
        detail = (
            f"File size ({format_file_size(file_size)}) exceeds maximum allowed size "
            f"({format_file_size(max_size)})"
        )
    raise PayloadTooLarge(detail, details={"max_size": max_size})


def raise_unsupported_type_error(media_type: str, allowed: list[str]) -> None:
    """
    Raise UnsupportedMediaType (HTTP 415).

    Raises:
        UnsupportedMediaType: Always.
    """
    raise UnsupportedMediaType(
        f"Invalid file type '{media_type}'",
        details={"media_type": media_type, "allowed": allowed},
    )
