"""
Tubely API Router Aggregator.

Combines the endpoint routers into a single APIRouter that the application
mounts under /api.

Router Structure:
    - /video_upload/{id}, /thumbnail_upload/{id}, /videos/{id}: video uploads
    - /blobs/{key}: files published in memory mode
"""

from fastapi import APIRouter

from tubely.api.v1.blobs import router as blobs_router
from tubely.api.v1.videos import router as videos_router


api_router = APIRouter()

api_router.include_router(videos_router, tags=["videos"])
api_router.include_router(blobs_router, tags=["blobs"])

__all__ = ["api_router"]
