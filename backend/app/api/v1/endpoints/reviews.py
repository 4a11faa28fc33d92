# backend/app/api/v1/endpoints/reviews.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger

from backend.app.api.v1.schemas import (
    FeaturedReviewResponse,
    ReviewListResponse,
    ReviewMode,
)
from backend.app.config import settings
from backend.app.services.review_service import (
    ReviewService,
    TopicContext,
    get_review_service_instance,
)
from backend.app.upstream.connection import ContentClient, get_content_client
from backend.app.upstream.reviews import get_review_feed

router = APIRouter()


@router.get(
    "/reviews",
    response_model=ReviewListResponse,
    summary="Reviews ranked by topical relevance; never fails",
)
async def list_reviews(
    lang: Optional[str] = None,
    count: int = Query(settings.reviews.max_count, ge=1, le=50),
    mode: ReviewMode = ReviewMode.top,
    keyword: List[str] = Query(default=[]),
    client: ContentClient = Depends(get_content_client),
    review_svc: ReviewService = Depends(get_review_service_instance),
):
    context = TopicContext.for_locale(lang, keyword)
    limit = count if mode == ReviewMode.top else None
    reviews = await review_svc.ranked_reviews(client, context, limit)
    logger.debug(f"API GET /reviews lang={lang} mode={mode.value}: {len(reviews)} reviews")
    return ReviewListResponse(
        reviews=reviews,
        count=len(reviews),
        language=context.language,
        keywords=context.keywords,
    )


@router.get("/reviews/featured", response_model=FeaturedReviewResponse)
async def featured_review(
    lang: Optional[str] = None,
    client: ContentClient = Depends(get_content_client),
    review_svc: ReviewService = Depends(get_review_service_instance),
):
    feed = await get_review_feed(client)
    review = review_svc.pick_featured(feed.reviews, TopicContext.for_locale(lang))
    return FeaturedReviewResponse(review=review)
