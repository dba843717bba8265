"""
Publishers push final upload bytes to a content store and return the public
reference that is written back into the video record.

Supported destinations (``video_publish_mode`` / ``thumbnail_publish_mode``):

- ``s3``: ``https://{bucket}.{store-domain}/{key}``
- ``cloudfront``: ``{distribution}/{key}``, objects still written to the S3 bucket
- ``local``: file under ``assets_root``, served at ``{base}/assets/{key}``
- ``data_url``: ``data:{content-type};base64,{payload}``, nothing stored
- ``memory``: process-wide key/value store, served at ``{base}/api/blobs/{key}``

A publisher never touches the video record. Every failure surfaces as
:class:`~tubely.core.errors.PublishFailed`.
"""

import asyncio
import base64
import logging
import shutil
import threading

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from botocore.exceptions import BotoCoreError, ClientError

from tubely.config import Settings
from tubely.core.errors import PublishFailed
from tubely.core.storage import StorageClient, get_storage_client


logger = logging.getLogger(__name__)

ASSETS_MOUNT = "/assets"
BLOBS_ROUTE = "/api/blobs"


class Publisher(Protocol):
    """Capability interface shared by every content store."""

    async def publish(self, body: BinaryIO, key: str, content_type: str) -> str: ...


# =============================================================================
# Object Store
# =============================================================================


class S3Publisher:
    """
    Publish to the configured S3 bucket.

    The returned reference is ``{base_url}/{key}``; ``base_url`` is either the
    bucket's virtual-hosted domain or a CDN distribution in front of it.
    """

    def __init__(self, storage: StorageClient, base_url: str) -> None:
        self.storage = storage
        self.base_url = base_url.rstrip("/")

    @classmethod
    def direct(cls, storage: StorageClient, settings: Settings) -> "S3Publisher":
        return cls(storage, f"https://{settings.s3_bucket_name}.{settings.object_store_domain}")

    @classmethod
    def cloudfront(cls, storage: StorageClient, settings: Settings) -> "S3Publisher":
        if not settings.s3_cf_distribution:
            raise ValueError("s3_cf_distribution must be set for the cloudfront publish mode")
        return cls(storage, settings.s3_cf_distribution)

    async def publish(self, body: BinaryIO, key: str, content_type: str) -> str:
        try:
            await asyncio.to_thread(self.storage.put_object, key, body, content_type)
        except (ClientError, BotoCoreError, OSError) as e:
            raise PublishFailed("Couldn't upload to object store", details={"key": key}) from e
        return f"{self.base_url}/{key}"


# =============================================================================
# Local Filesystem
# =============================================================================


class LocalFilesystemPublisher:
    """Write files under ``root``; they are served as static files at /assets."""

    def __init__(self, root: Path | str, base_url: str) -> None:
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")

    def _target(self, key: str) -> Path:
        target = (self.root / key).resolve()
        if not target.is_relative_to(self.root):
            raise PublishFailed("Storage key escapes the assets directory", details={"key": key})
        return target

    @staticmethod
    def _write(body: BinaryIO, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with target.open("wb") as out:
                shutil.copyfileobj(body, out)
        except BaseException:
            target.unlink(missing_ok=True)
            raise

    async def publish(self, body: BinaryIO, key: str, content_type: str) -> str:
        target = self._target(key)
        try:
            await asyncio.to_thread(self._write, body, target)
        except OSError as e:
            logger.exception("Failed to write %s", target)
            raise PublishFailed("Couldn't save file", details={"key": key}) from e
        logger.info("Published file locally", extra={"path": str(target), "key": key})
        return f"{self.base_url}{ASSETS_MOUNT}/{key}"


# =============================================================================
# Embedded Data URL
# =============================================================================


class DataURLPublisher:
    """Embed the bytes in the reference itself. Meant for small thumbnails."""

    async def publish(self, body: BinaryIO, key: str, content_type: str) -> str:
        try:
            data = await asyncio.to_thread(body.read)
        except OSError as e:
            raise PublishFailed("Couldn't read file to encode", details={"key": key}) from e
        encoded = base64.b64encode(data).decode("ascii")
        return f"data:{content_type};base64,{encoded}"


# =============================================================================
# In-Memory Store
# =============================================================================


@dataclass(frozen=True)
class Blob:
    data: bytes
    content_type: str


class InMemoryBlobStore:
    """Process-wide key/value store guarded by a lock."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blobs: dict[str, Blob] = {}

    def put(self, key: str, data: bytes, content_type: str) -> None:
        with self._lock:
            self._blobs[key] = Blob(data=data, content_type=content_type)

    def get(self, key: str) -> Blob | None:
        with self._lock:
            return self._blobs.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


class InMemoryPublisher:
    """Keep bytes in an InMemoryBlobStore, served by GET /api/blobs/{key}."""

    def __init__(self, store: InMemoryBlobStore, base_url: str) -> None:
        self.store = store
        self.base_url = base_url.rstrip("/")

    async def publish(self, body: BinaryIO, key: str, content_type: str) -> str:
        try:
            data = await asyncio.to_thread(body.read)
        except OSError as e:
            raise PublishFailed("Couldn't read file to store", details={"key": key}) from e
        self.store.put(key, data, content_type)
        logger.info(
            "Published file in memory", extra={"key": key, "stored_blobs": len(self.store)}
        )
        return f"{self.base_url}{BLOBS_ROUTE}/{key}"


_blob_store_container: dict[str, InMemoryBlobStore] = {}


def get_blob_store() -> InMemoryBlobStore:
    """Get the process-wide InMemoryBlobStore singleton."""
    if "instance" not in _blob_store_container:
        _blob_store_container["instance"] = InMemoryBlobStore()
    return _blob_store_container["instance"]


# =============================================================================
# Factory
# =============================================================================


def build_publisher(
    mode: str,
    settings: Settings,
    base_url: str,
    storage_factory: Callable[[], StorageClient] = get_storage_client,
    blob_store: InMemoryBlobStore | None = None,
) -> Publisher:
    """
    Build the publisher for a publish mode.

    Args:
        mode: One of s3, cloudfront, local, data_url, memory.
        settings: Application settings.
        base_url: Public base URL of this server, used by local and memory modes.
        storage_factory: Returns the S3 client; only called for s3 and cloudfront.
        blob_store: Store for memory mode; defaults to the process-wide store.

    Raises:
        ValueError: For an unknown mode or incomplete configuration.
    """
    if mode == "s3":
        return S3Publisher.direct(storage_factory(), settings)
    if mode == "cloudfront":
        return S3Publisher.cloudfront(storage_factory(), settings)
    if mode == "local":
        return LocalFilesystemPublisher(settings.assets_root, base_url)
    if mode == "data_url":
        return DataURLPublisher()
    if mode == "memory":
        if blob_store is None:
            blob_store = get_blob_store()
        return InMemoryPublisher(blob_store, base_url)
    raise ValueError(f"Unknown publish mode '{mode}'")
