"""
Async runner for the external media tools (ffprobe, ffmpeg).

The tools run as child processes off the event loop. Every invocation is
bounded by a timeout, and the child is killed if the timeout fires or the
awaiting task is cancelled.
"""

import asyncio
import logging

from dataclasses import dataclass


logger = logging.getLogger(__name__)

STDERR_SNIPPET_CHARS = 500


@dataclass
class ToolResult:
    """Outcome of a finished tool invocation."""

    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def stderr_snippet(self) -> str:
        return self.stderr.decode("utf-8", errors="replace").strip()[-STDERR_SNIPPET_CHARS:]


async def run_media_tool(*cmd: str, timeout: float) -> ToolResult:
    """
    Run ``cmd`` and collect its output.

    Args:
        *cmd: Executable followed by its arguments.
        timeout: Seconds to wait before killing the process.

    Returns:
        ToolResult: Exit code and captured output.

    Raises:
        TimeoutError: If the process did not finish within ``timeout``.
        OSError: If the executable cannot be started.
    """
    logger.debug("Running media tool: %s", " ".join(cmd))
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.warning("Media tool %s timed out after %.1fs", cmd[0], timeout)
        raise TimeoutError(f"{cmd[0]} timed out after {timeout}s") from e
    finally:
        if process.returncode is None:
            process.kill()
            await process.wait()

    return ToolResult(returncode=process.returncode, stdout=stdout, stderr=stderr)
