"""
Tubely Backend Application Package

FastAPI service that ingests video and thumbnail uploads for Tubely video
records: it authenticates the caller, validates and stages the upload,
optionally rewrites videos for fast start, classifies them by aspect ratio,
publishes the bytes to the configured content store and records the public
URL on the video.

Package Structure:
- api/: REST endpoints (uploads, record read, in-memory blob serving)
- core/: Infrastructure (auth, MongoDB, S3 client, error taxonomy)
- models/: Pydantic models for video records
- services/: Pipeline stages and the orchestrator
- utils/: Validation and logging helpers
"""

__version__ = "1.0.0"
__app_name__ = "Tubely"
