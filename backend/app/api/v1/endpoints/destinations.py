# backend/app/api/v1/endpoints/destinations.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from backend.app.api.v1.endpoints.tours import upstream_http_error
from backend.app.core.errors import ConfigurationError, UpstreamFailure
from backend.app.upstream import content as upstream_content
from backend.app.upstream.connection import ContentClient, get_content_client
from backend.app.upstream.schemas import ClassificationTerm

router = APIRouter()


@router.get(
    "/destinations/{slug}",
    response_model=ClassificationTerm,
    summary="Destination term, counted for one language when lang is given",
)
async def read_destination(
    slug: str,
    lang: Optional[str] = None,
    client: ContentClient = Depends(get_content_client),
):
    logger.debug(f"API GET /destinations/{slug} lang={lang}")
    try:
        term = await upstream_content.get_destination_with_language_count(client, slug, lang=lang)
    except (UpstreamFailure, ConfigurationError) as e:
        raise upstream_http_error(e, "read_destination")
    if term is None:
        raise HTTPException(status_code=404, detail="Destination not found.")
    return term
