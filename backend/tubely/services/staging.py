"""
Temporary staging of inbound uploads.

An upload is copied chunk by chunk into a freshly created scratch file so the
inspection and transform tools can work on a real path. The scratch file is a
scoped resource: :func:`staged_upload` closes its write handle before the body
runs, and its exit removes the file whether the body returned, raised, or was
cancelled because the client went away. Downstream stages re-read the file
from the start by path.

Example:
    ```python
    async with staged_upload(upload, "video/mp4", max_bytes=1 << 30) as staged:
        info = await inspector.inspect(staged.path)
    # staged.path no longer exists here
    ```
"""

import contextlib
import logging
import os
import tempfile

from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import aiofiles

from tubely.core.errors import StorageIOError
from tubely.utils.file_validator import raise_file_too_large_error


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024
SCRATCH_PREFIX = "tubely-upload-"


class AsyncReadable(Protocol):
    """Anything with an awaitable ``read(size)``, e.g. FastAPI's UploadFile."""

    async def read(self, size: int = -1) -> bytes: ...


@dataclass
class StagedFile:
    """
    An upload persisted to scratch storage.

    Attributes:
        path: Location of the scratch file
        content_type: Validated media type of the upload
        size: Number of bytes written
    """

    path: Path
    content_type: str
    size: int


def remove_scratch_file(path: Path) -> None:
    """
    Delete a scratch file if it still exists.

    Removal failures are logged, not raised, so they never mask the
    error that ended the request.
    """
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.warning("Failed to remove scratch file %s", path, exc_info=True)
    else:
        logger.debug("Removed scratch file %s", path)


@contextlib.asynccontextmanager
async def staged_upload(
    source: AsyncReadable,
    content_type: str,
    max_bytes: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    suffix: str = "",
    directory: str | None = None,
) -> AsyncIterator[StagedFile]:
    """
    Copy ``source`` into a scratch file and yield it once fully written and closed.

    Args:
        source: Inbound byte stream.
        content_type: Already validated media type, carried on the result.
        max_bytes: Ceiling enforced while copying.
        chunk_size: Bytes read from ``source`` per iteration.
        suffix: Scratch file suffix, e.g. ".mp4".
        directory: Scratch directory; defaults to the system temp dir.

    Yields:
        StagedFile: The staged upload.

    Raises:
        StorageIOError: If the scratch file cannot be created or written.
        PayloadTooLarge: If ``source`` yields more than ``max_bytes``.
    """
    try:
        fd, raw_path = tempfile.mkstemp(prefix=SCRATCH_PREFIX, suffix=suffix, dir=directory)
        os.close(fd)
    except OSError as e:
        logger.exception("Couldn't create scratch file")
        raise StorageIOError("Couldn't create temp file") from e

    path = Path(raw_path)
    try:
        try:
            # write handle is closed before the body runs and before removal
            async with aiofiles.open(path, "wb") as handle:
                size = 0
                while chunk := await source.read(chunk_size):
                    size += len(chunk)
                    if size > max_bytes:
                        raise_file_too_large_error(max_bytes)
                    await handle.write(chunk)
        except OSError as e:
            logger.exception("Couldn't stage upload to %s", path)
            raise StorageIOError("Couldn't write temp file") from e

        logger.debug("Staged %d bytes to %s", size, path)
        yield StagedFile(path=path, content_type=content_type, size=size)
    finally:
        remove_scratch_file(path)


__all__ = ["AsyncReadable", "StagedFile", "remove_scratch_file", "staged_upload"]
