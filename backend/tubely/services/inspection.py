"""
Media inspection and aspect ratio classification.

Videos are published under a key prefix derived from their orientation. The
dimensions come from the first elementary stream reported by ffprobe::

    ffprobe -v error -print_format json -show_streams <path>

Classification uses an open tolerance band of 0.01 around 16/9 and 9/16. A
ratio exactly 0.01 away from either target is NOT matched and falls through
to the next check (ultimately ``other``).
"""

import json
import logging

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from tubely.core.errors import InspectionFailed, NoStreamData
from tubely.models.video import AspectCategory
from tubely.services.media_tools import run_media_tool


logger = logging.getLogger(__name__)

LANDSCAPE_RATIO = 16 / 9
PORTRAIT_RATIO = 9 / 16
RATIO_TOLERANCE = 0.01


@dataclass(frozen=True)
class StreamInfo:
    """Dimensions of the first elementary stream of a media file."""

    width: int
    height: int
    codec_type: str | None = None

    @property
    def aspect_category(self) -> AspectCategory:
        return classify_aspect_ratio(self.width, self.height)


class MediaInspector(Protocol):
    """Capability interface for anything that can read stream dimensions."""

    async def inspect(self, path: Path) -> StreamInfo: ...


def classify_aspect_ratio(width: int, height: int) -> AspectCategory:
    """
    Classify dimensions as landscape (16:9), portrait (9:16) or other.

    Example:
        >>> classify_aspect_ratio(1920, 1080)
        <AspectCategory.LANDSCAPE: 'landscape'>
        >>> classify_aspect_ratio(1000, 1000)
        <AspectCategory.OTHER: 'other'>
    """
    if height <= 0 or width <= 0:
        return AspectCategory.OTHER

    ratio = width / height
    if abs(ratio - LANDSCAPE_RATIO) < RATIO_TOLERANCE:
        return AspectCategory.LANDSCAPE
    if abs(ratio - PORTRAIT_RATIO) < RATIO_TOLERANCE:
        return AspectCategory.PORTRAIT
    return AspectCategory.OTHER


def parse_probe_output(raw: bytes | str) -> StreamInfo:
    """
    Extract the first stream's dimensions from ffprobe JSON output.

    Raises:
        InspectionFailed: If the output is not the expected JSON document.
        NoStreamData: If no streams are reported.
    """
    try:
        document: Any = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InspectionFailed("Could not parse ffprobe output") from e

    if not isinstance(document, dict):
        raise InspectionFailed("Unexpected ffprobe output")

    streams = document.get("streams") or []
    if not isinstance(streams, list):
        raise InspectionFailed("Unexpected ffprobe output")
    if not streams:
        raise NoStreamData("No video streams found")

    first = streams[0]
    try:
        width = int(first.get("width") or 0)
        height = int(first.get("height") or 0)
    except (AttributeError, TypeError, ValueError) as e:
        raise InspectionFailed("Invalid stream dimensions in ffprobe output") from e

    return StreamInfo(width=width, height=height, codec_type=first.get("codec_type"))


class FFprobeInspector:
    """MediaInspector backed by the ffprobe executable."""

    def __init__(self, binary: str = "ffprobe", timeout: float = 300.0) -> None:
        self.binary = binary
        self.timeout = timeout

    async def inspect(self, path: Path) -> StreamInfo:
        """
        Probe ``path`` and return the first stream's dimensions.

        Raises:
            InspectionFailed: If ffprobe cannot run, times out, exits
                non-zero, or prints unparseable output.
            NoStreamData: If ffprobe reports no streams.
        """
        try:
            result = await run_media_tool(
                self.binary,
                "-v",
                "error",
                "-print_format",
                "json",
                "-show_streams",
                str(path),
                timeout=self.timeout,
            )
        except (OSError, TimeoutError) as e:
            logger.exception("ffprobe could not be run on %s", path)
            raise InspectionFailed(f"Could not run ffprobe: {e}") from e

        if not result.ok:
            logger.warning(
                "ffprobe exited with %d for %s: %s",
                result.returncode,
                path,
                result.stderr_snippet(),
            )
            raise InspectionFailed(
                "ffprobe failed",
                details={"returncode": result.returncode, "stderr": result.stderr_snippet()},
            )

        info = parse_probe_output(result.stdout)
        logger.debug("Probed %s: %dx%d", path, info.width, info.height)
        return info


__all__ = [
    "FFprobeInspector",
    "MediaInspector",
    "StreamInfo",
    "classify_aspect_ratio",
    "parse_probe_output",
]
