"""
Fast-start transform stage.

Rewrites an MP4 container so the moov atom precedes the media data, which
lets players start before the whole file has downloaded. Streams are copied,
not re-encoded::

    ffmpeg -i <in> -c copy -movflags faststart -f mp4 <in>.processing

The output path is a scoped resource of its own: it is removed when the
``transformed`` context exits, independently of the staged input.
"""

import contextlib
import logging

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Protocol

from tubely.core.errors import TransformFailed
from tubely.services.media_tools import run_media_tool
from tubely.services.staging import remove_scratch_file


logger = logging.getLogger(__name__)

PROCESSING_SUFFIX = ".processing"


class MediaTransformer(Protocol):
    """Capability interface: rewrite ``path`` and return the output path."""

    async def transform(self, path: Path) -> Path: ...


class FFmpegFastStartTransformer:
    """MediaTransformer that relocates MP4 metadata with ffmpeg."""

    def __init__(self, binary: str = "ffmpeg", timeout: float = 300.0) -> None:
        self.binary = binary
        self.timeout = timeout

    @staticmethod
    def output_path_for(path: Path) -> Path:
        return path.with_name(path.name + PROCESSING_SUFFIX)

    async def transform(self, path: Path) -> Path:
        """
        Write a fast-start copy of ``path`` next to it.

        Returns:
            Path: ``path`` with the ".processing" suffix appended.

        Raises:
            TransformFailed: If ffmpeg cannot run, times out or exits non-zero.
                Any partial output is removed first.
        """
        output = self.output_path_for(path)
        try:
            result = await run_media_tool(
                self.binary,
                "-i",
                str(path),
                "-c",
                "copy",
                "-movflags",
                "faststart",
                "-f",
                "mp4",
                str(output),
                timeout=self.timeout,
            )
        except (OSError, TimeoutError) as e:
            remove_scratch_file(output)
            logger.exception("ffmpeg could not be run on %s", path)
            raise TransformFailed(f"Could not run ffmpeg: {e}") from e
        except BaseException:
            remove_scratch_file(output)
            raise

        if not result.ok:
            remove_scratch_file(output)
            logger.warning(
                "ffmpeg exited with %d for %s: %s",
                result.returncode,
                path,
                result.stderr_snippet(),
            )
            raise TransformFailed(
                "ffmpeg failed",
                details={"returncode": result.returncode, "stderr": result.stderr_snippet()},
            )

        logger.debug("Wrote fast-start copy of %s to %s", path, output)
        return output


@contextlib.asynccontextmanager
async def transformed(transformer: MediaTransformer, path: Path) -> AsyncIterator[Path]:
    """
    Run ``transformer`` on ``path`` and remove its output on exit.

    Example:
        ```python
        async with transformed(FFmpegFastStartTransformer(), staged.path) as output:
            await publish(output)
        ```
    """
    output = await transformer.transform(path)
    try:
        yield output
    finally:
        if output != path:
            remove_scratch_file(output)


__all__ = [
    "FFmpegFastStartTransformer",
    "MediaTransformer",
    "PROCESSING_SUFFIX",
    "transformed",
]
