"""
Storage key generation.

Keys have the form ``[category/]token.extension``: the category is the
aspect ratio prefix for videos and is omitted for thumbnails, the token is 32
bytes from the OS CSPRNG encoded as unpadded URL-safe base64, and the
extension is the media subtype (``video/mp4`` -> ``mp4``).
"""

import base64
import logging
import secrets

from tubely.core.errors import RandomnessUnavailable
from tubely.models.video import AspectCategory
from tubely.utils.file_validator import extension_for_media_type


logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def generate_token(num_bytes: int = TOKEN_BYTES) -> str:
    """
    Return a URL-safe random token.

    Raises:
        RandomnessUnavailable: If the OS random source fails. There is no
            fallback to a weaker generator.
    """
    try:
        raw = secrets.token_bytes(num_bytes)
    except (OSError, NotImplementedError) as e:
        logger.exception("Secure random source unavailable")
        raise RandomnessUnavailable() from e
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def build_storage_key(media_type: str, category: AspectCategory | None = None) -> str:
    """
    Compose a fresh storage key for an upload.

    Example:
        >>> build_storage_key("video/mp4", AspectCategory.LANDSCAPE)
        'landscape/3q2-7wEnS0u4Ztu0Y_C7nW8M9Dq9l6ZkG8sA2b1yJ6E.mp4'
    """
    filename = f"{generate_token()}.{extension_for_media_type(media_type)}"
    if category is None:
        return filename
    prefix = category.value if isinstance(category, AspectCategory) else str(category)
    return f"{prefix}/{filename}"
