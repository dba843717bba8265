"""
Tests for the request body ceiling applied to the upload routes before form
parsing.
"""

import json

import pytest

from fastapi import FastAPI, File, UploadFile
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from tubely.core.upload_limits import UploadSizeLimitMiddleware
from tubely.main import app as tubely_app
from tubely.main import settings


MAX_BYTES = 1024
OVERHEAD = 256


@pytest.fixture
def handled() -> list[int]:
    """Sizes of the uploads that reached an endpoint."""
    return []


@pytest.fixture
def limited_client(handled: list[int]) -> TestClient:
    app = FastAPI()
    app.add_middleware(
        UploadSizeLimitMiddleware, limits={"/upload/": MAX_BYTES}, overhead=OVERHEAD
    )

    @app.post("/upload/{name}")
    async def upload(name: str, file: UploadFile = File(...)) -> dict:
        data = await file.read()
        handled.append(len(data))
        return {"size": len(data)}

    @app.post("/other")
    async def other(file: UploadFile = File(...)) -> dict:
        data = await file.read()
        handled.append(len(data))
        return {"size": len(data)}

    return TestClient(app)


def _scope(path: str, headers: list[tuple[bytes, bytes]] | None = None) -> dict:
    return {
        "type": "http",
        "method": "POST",
        "path": path,
        "headers": headers or [],
        "query_string": b"",
    }


# =============================================================================
# DECLARED LENGTH
# =============================================================================


class TestDeclaredLength:
    def test_oversized_body_rejected_before_endpoint(self, limited_client, handled) -> None:
        response = limited_client.post(
            "/upload/a", files={"file": ("a.bin", b"x" * 4096, "application/octet-stream")}
        )

        assert response.status_code == 413
        body = response.json()
        assert body["error"] == "payload_too_large"
        assert body["details"] == {"max_size": MAX_BYTES}
        assert handled == []

    def test_body_within_ceiling_passes(self, limited_client, handled) -> None:
        response = limited_client.post(
            "/upload/a", files={"file": ("a.bin", b"x" * 512, "application/octet-stream")}
        )

        assert response.status_code == 200
        assert handled == [512]

    def test_unlisted_path_is_not_limited(self, limited_client, handled) -> None:
        response = limited_client.post(
            "/other", files={"file": ("a.bin", b"x" * 4096, "application/octet-stream")}
        )

        assert response.status_code == 200
        assert handled == [4096]


# =============================================================================
# STREAMED BODY
# =============================================================================


class TestStreamedBody:
    @pytest.mark.asyncio
    async def test_stops_reading_once_ceiling_is_passed(self) -> None:
        chunks = [b"a" * 512] * 8
        delivered: list[bytes] = []
        sent: list[dict] = []

        async def receive() -> dict:
            chunk = chunks[len(delivered)]
            delivered.append(chunk)
            return {
                "type": "http.request",
                "body": chunk,
                "more_body": len(delivered) < len(chunks),
            }

        async def send(message: dict) -> None:
            sent.append(message)

        async def drain_then_reply(scope, receive, send) -> None:
            while (await receive()).get("more_body"):
                pass
            await JSONResponse({"ok": True})(scope, receive, send)

        middleware = UploadSizeLimitMiddleware(
            drain_then_reply, limits={"/upload/": MAX_BYTES}, overhead=OVERHEAD
        )

        await middleware(_scope("/upload/a"), receive, send)

        # 3 * 512 is the first count past 1024 + 256
        assert len(delivered) == 3
        assert sent[0]["type"] == "http.response.start"
        assert sent[0]["status"] == 413
        assert json.loads(sent[1]["body"])["error"] == "payload_too_large"

    @pytest.mark.asyncio
    async def test_app_errors_propagate_below_ceiling(self) -> None:
        async def receive() -> dict:
            return {"type": "http.request", "body": b"small", "more_body": False}

        async def send(message: dict) -> None:
            pass

        async def failing_app(scope, receive, send) -> None:
            await receive()
            raise RuntimeError("boom")

        middleware = UploadSizeLimitMiddleware(failing_app, limits={"/upload/": MAX_BYTES})

        with pytest.raises(RuntimeError, match="boom"):
            await middleware(_scope("/upload/a"), receive, send)


# =============================================================================
# APPLICATION WIRING
# =============================================================================


class TestApplicationWiring:
    def test_upload_routes_are_limited_by_settings(self) -> None:
        entries = [m for m in tubely_app.user_middleware if m.cls is UploadSizeLimitMiddleware]

        assert len(entries) == 1
        assert entries[0].kwargs["limits"] == {
            "/api/video_upload/": settings.max_video_upload_bytes,
            "/api/thumbnail_upload/": settings.max_thumbnail_upload_bytes,
        }

    def test_limit_lookup_by_prefix(self) -> None:
        middleware = UploadSizeLimitMiddleware(
            tubely_app, limits={"/api/video_upload/": 10, "/api/thumbnail_upload/": 5}
        )

        assert middleware.limit_for("/api/video_upload/abc") == 10
        assert middleware.limit_for("/api/thumbnail_upload/abc") == 5
        assert middleware.limit_for("/api/videos/abc") is None
