"""
Request body ceilings for the upload routes.

Form parsing spools the whole multipart body to disk before an endpoint runs,
so the per-file cap applied while staging cannot stop an oversized body from
being read. :class:`UploadSizeLimitMiddleware` sits in front of the router and
rejects such requests with the 413 envelope: up front when ``Content-Length``
already exceeds the ceiling, otherwise as soon as the bytes received pass it.

The ceiling for a route is its file size limit plus a fixed allowance for
multipart framing (boundaries and part headers). The exact per-file limit is
still enforced by staging.
"""

import logging

from collections.abc import Mapping

from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from tubely.core.errors import PayloadTooLarge
from tubely.utils.file_validator import format_file_size


logger = logging.getLogger(__name__)

MULTIPART_OVERHEAD_BYTES = 64 * 1024


def _content_length(scope: Scope) -> int | None:
    for name, value in scope.get("headers", []):
        if name == b"content-length":
            try:
                return int(value)
            except ValueError:
                return None
    return None


class UploadSizeLimitMiddleware:
    """
    Reject upload requests whose body exceeds the route's ceiling.

    Args:
        app: The wrapped ASGI application.
        limits: Path prefix to maximum file size in bytes, e.g.
            ``{"/api/video_upload/": 1 << 30}``. Unlisted paths are not limited.
        overhead: Bytes allowed on top of the file size for multipart framing.
    """

    def __init__(
        self,
        app: ASGIApp,
        limits: Mapping[str, int],
        overhead: int = MULTIPART_OVERHEAD_BYTES,
    ) -> None:
        self.app = app
        self.limits = dict(limits)
        self.overhead = overhead

    def limit_for(self, path: str) -> int | None:
        for prefix, max_bytes in self.limits.items():
            if path.startswith(prefix):
                return max_bytes
        return None

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["method"] != "POST":
            await self.app(scope, receive, send)
            return

        max_bytes = self.limit_for(scope["path"])
        if max_bytes is None:
            await self.app(scope, receive, send)
            return

        ceiling = max_bytes + self.overhead
        declared = _content_length(scope)
        if declared is not None and declared > ceiling:
            logger.warning(
                "Rejected upload by Content-Length",
                extra={"path": scope["path"], "content_length": declared, "ceiling": ceiling},
            )
            await self._reject(scope, receive, send, max_bytes)
            return

        received = 0
        exceeded = False

        async def limited_receive() -> Message:
            nonlocal received, exceeded
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > ceiling:
                    exceeded = True
                    raise PayloadTooLarge(details={"max_size": max_bytes})
            return message

        async def guarded_send(message: Message) -> None:
            # once the ceiling is passed only the 413 below goes out
            if not exceeded:
                await send(message)

        try:
            await self.app(scope, limited_receive, guarded_send)
        except Exception:
            if not exceeded:
                raise
            logger.debug("Upload aborted past the size ceiling", exc_info=True)

        if exceeded:
            logger.warning(
                "Rejected upload after reading %d bytes",
                received,
                extra={"path": scope["path"], "ceiling": ceiling},
            )
            await self._reject(scope, receive, send, max_bytes)

    @staticmethod
    async def _reject(scope: Scope, receive: Receive, send: Send, max_bytes: int) -> None:
        error = PayloadTooLarge(
            f"File exceeds maximum allowed size ({format_file_size(max_bytes)})",
            details={"max_size": max_bytes},
        )
        response = JSONResponse(
            status_code=error.status_code,
            content=error.to_dict(),
            headers={"Connection": "close"},
        )
        await response(scope, receive, send)


__all__ = ["MULTIPART_OVERHEAD_BYTES", "UploadSizeLimitMiddleware"]
