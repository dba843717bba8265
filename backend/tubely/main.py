"""
Tubely API - FastAPI Application Entry Point.

Initializes the FastAPI application with CORS middleware, the JSON error
envelope, the upload routers under /api, the /assets static mount for
locally published files, and startup/shutdown handlers for logging and the
MongoDB connection.

Run locally:
    uvicorn tubely.main:app --reload --port 8091
"""

import logging
import time

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

import uvicorn

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from tubely.api.v1 import api_router
from tubely.config import get_settings
from tubely.core.database import close_db, get_db_client, init_db
from tubely.core.errors import MalformedRequest, TubelyError, tubely_error_handler
from tubely.core.upload_limits import UploadSizeLimitMiddleware
from tubely.services.publishers import ASSETS_MOUNT
from tubely.utils.logger import setup_logging


logger = logging.getLogger(__name__)

HTTP_ERROR_THRESHOLD = 400


# =============================================================================
# Configuration Loading
# =============================================================================

settings = get_settings()


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """
    Configure logging, create the assets directory and connect to MongoDB on
    startup; disconnect on shutdown.

    A failed database connection is logged, not raised, so /health keeps
    answering while the database is unavailable.
    """
    setup_logging(log_level=settings.log_level, json_logs=settings.log_json)
    Path(settings.assets_root).mkdir(parents=True, exist_ok=True)
    logger.info(
        "Tubely API starting",
        extra={"app_env": settings.app_env, "host": settings.host, "port": settings.port},
    )

    try:
        await init_db(settings)
    except RuntimeError:
        logger.exception("Failed to initialize database connection")

    yield

    await close_db()
    logger.info("Tubely API shutdown complete")


# =============================================================================
# FastAPI Application Initialization
# =============================================================================

app = FastAPI(
    title="Tubely API",
    version="1.0.0",
    description="Video and thumbnail ingestion for Tubely",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    UploadSizeLimitMiddleware,
    limits={
        "/api/video_upload/": settings.max_video_upload_bytes,
        "/api/thumbnail_upload/": settings.max_thumbnail_upload_bytes,
    },
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    """Log each request with its status and duration; tag the response with an ID."""
    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    start_time = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "Request failed: %s %s", request.method, request.url.path,
            extra={"request_id": request_id},
        )
        raise

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.DEBUG if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    logger.log(
        log_level,
        "Request completed: %s %s",
        request.method,
        request.url.path,
        extra={
            "request_id": request_id,
            "status_code": response.status_code,
            "process_time_ms": process_time_ms,
        },
    )
    return response


# =============================================================================
# Error Handlers
# =============================================================================

app.add_exception_handler(TubelyError, tubely_error_handler)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed path, form or multipart input with the 400 envelope."""
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    error = MalformedRequest("Malformed request", details={"errors": errors})
    return await tubely_error_handler(request, error)


# =============================================================================
# Root and Health Endpoints
# =============================================================================


@app.get("/", tags=["root"])
async def root() -> dict:
    return {
        "name": "Tubely API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health", tags=["health"])
async def health_check() -> dict:
    """Liveness probe; does not check backend dependencies."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "Tubely Backend",
    }


@app.get("/ready", tags=["health"])
async def readiness_check() -> dict[str, Any]:
    """Readiness probe: ready once MongoDB answers a ping."""
    try:
        mongodb_ready = await get_db_client().ping()
    except RuntimeError:
        mongodb_ready = False

    return {
        "ready": mongodb_ready,
        "timestamp": datetime.now(UTC).isoformat(),
        "checks": {"mongodb": mongodb_ready},
    }


# =============================================================================
# Routers and Static Files
# =============================================================================

app.include_router(api_router, prefix="/api")

# the directory is created on startup
app.mount(
    ASSETS_MOUNT,
    StaticFiles(directory=settings.assets_root, check_dir=False),
    name="assets",
)


if __name__ == "__main__":
    uvicorn.run(
        "tubely.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level,
    )
