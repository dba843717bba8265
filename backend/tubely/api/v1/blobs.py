"""
Serves files published with the ``memory`` publish mode.

GET /blobs/{key} returns the stored bytes with their original content type.
"""

from fastapi import APIRouter, Depends, Response

from tubely.core.errors import RecordNotFound
from tubely.services.publishers import InMemoryBlobStore, get_blob_store


router = APIRouter()


@router.get("/blobs/{key:path}")
async def get_blob(key: str, store: InMemoryBlobStore = Depends(get_blob_store)) -> Response:
    blob = store.get(key)
    if blob is None:
        raise RecordNotFound("Blob not found", details={"key": key})
    return Response(content=blob.data, media_type=blob.content_type)
