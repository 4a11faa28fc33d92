# backend/app/api/v1/endpoints/cache.py
from typing import Optional

from fastapi import APIRouter, Depends
from loguru import logger

from backend.app.api.v1.schemas import CacheInvalidationResponse
from backend.app.upstream.connection import ContentClient, get_content_client

router = APIRouter()


@router.delete(
    "/cache",
    response_model=CacheInvalidationResponse,
    summary="Invalidate cached upstream responses",
)
async def invalidate_cache(
    prefix: Optional[str] = None,
    client: ContentClient = Depends(get_content_client),
):
    if prefix:
        # keys start with the endpoint path
        removed = client.cache.invalidate_prefix(prefix)
    else:
        removed = client.cache.clear()
    logger.info(f"API DELETE /cache prefix={prefix!r}: {removed} entries removed")
    return CacheInvalidationResponse(removed=removed, prefix=prefix)
