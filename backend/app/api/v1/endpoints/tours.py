# backend/app/api/v1/endpoints/tours.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from backend.app.api.v1.schemas import TourListResponse, TourPage
from backend.app.core.errors import (
    ConfigurationError,
    Unauthorized,
    UpstreamFailure,
    UpstreamTimeout,
)
from backend.app.services.search_service import SearchService
from backend.app.upstream import content as upstream_content
from backend.app.upstream.connection import ContentClient, get_content_client
from backend.app.upstream.schemas import ContentItem

router = APIRouter()


def get_search_service(
    client: ContentClient = Depends(get_content_client),
) -> SearchService:
    return SearchService(client)


def upstream_http_error(e: Exception, method_name: str) -> HTTPException:
    """Map a classified upstream failure onto the HTTP status we answer with."""
    if isinstance(e, Unauthorized):
        logger.error(f"{method_name}: upstream rejected credentials: {e}")
        return HTTPException(status_code=502, detail="upstream rejected credentials")
    if isinstance(e, UpstreamTimeout):
        logger.warning(f"{method_name}: upstream timed out: {e}")
        return HTTPException(status_code=504, detail="upstream timed out")
    if isinstance(e, ConfigurationError):
        logger.error(f"{method_name}: {e}")
        return HTTPException(status_code=503, detail="upstream not configured")
    logger.warning(f"{method_name}: upstream error: {e}")
    return HTTPException(status_code=502, detail="upstream error")


@router.get("/tours", response_model=TourPage, summary="Newest tours, paginated")
async def list_tours(
    page: int = Query(1, ge=1),
    per_page: int = Query(12, ge=1, le=upstream_content.MAX_PER_PAGE),
    lang: Optional[str] = None,
    client: ContentClient = Depends(get_content_client),
):
    logger.debug(f"API GET /tours page={page} per_page={per_page} lang={lang}")
    try:
        return await upstream_content.get_newest_items(
            client, page=page, per_page=per_page, lang=lang
        )
    except (UpstreamFailure, ConfigurationError) as e:
        raise upstream_http_error(e, "list_tours")


@router.get("/tours/id/{item_id}", response_model=ContentItem, summary="Tour by numeric id")
async def read_tour_by_id(
    item_id: int,
    client: ContentClient = Depends(get_content_client),
):
    try:
        item = await upstream_content.get_item_by_id(client, item_id)
    except (UpstreamFailure, ConfigurationError) as e:
        raise upstream_http_error(e, "read_tour_by_id")
    if item is None:
        raise HTTPException(status_code=404, detail="Tour not found.")
    return item


@router.get("/tours/{slug}", response_model=ContentItem, summary="Tour by slug")
async def read_tour(
    slug: str,
    lang: Optional[str] = None,
    client: ContentClient = Depends(get_content_client),
):
    try:
        item = await upstream_content.get_item_by_slug(client, slug, lang=lang)
    except (UpstreamFailure, ConfigurationError) as e:
        raise upstream_http_error(e, "read_tour")
    if item is None:
        raise HTTPException(status_code=404, detail="Tour not found.")
    return item


@router.get(
    "/topics/{topic}/tours",
    response_model=TourPage,
    summary="Every tour under a topic, with keyword fallback",
)
async def list_topic_tours(
    topic: str,
    page: int = Query(1, ge=1),
    per_page: int = Query(12, ge=1, le=upstream_content.MAX_PER_PAGE),
    lang: Optional[str] = None,
    search_svc: SearchService = Depends(get_search_service),
):
    logger.debug(f"API GET /topics/{topic}/tours page={page} per_page={per_page}")
    try:
        return await search_svc.resolve_topic(topic, page=page, per_page=per_page, lang=lang)
    except (UpstreamFailure, ConfigurationError) as e:
        raise upstream_http_error(e, "list_topic_tours")


@router.get("/types/{type_slug}/tours", response_model=TourListResponse)
async def list_type_tours(
    type_slug: str,
    lang: Optional[str] = None,
    search_svc: SearchService = Depends(get_search_service),
):
    try:
        items = await search_svc.items_by_type(type_slug, lang=lang)
    except (UpstreamFailure, ConfigurationError) as e:
        raise upstream_http_error(e, "list_type_tours")
    return TourListResponse(slug=type_slug, items=items, total=len(items))


@router.get("/durations/{duration_slug}/tours", response_model=TourListResponse)
async def list_duration_tours(
    duration_slug: str,
    lang: Optional[str] = None,
    search_svc: SearchService = Depends(get_search_service),
):
    try:
        items = await search_svc.items_by_duration(duration_slug, lang=lang)
    except (UpstreamFailure, ConfigurationError) as e:
        raise upstream_http_error(e, "list_duration_tours")
    return TourListResponse(slug=duration_slug, items=items, total=len(items))
