# backend/app/api/v1/schemas.py
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from backend.app.upstream.schemas import ContentItem, Page, ReviewRecord

TourPage = Page[ContentItem]


class ReviewMode(str, Enum):
    top = "top"
    all = "all"


class TourListResponse(BaseModel):
    slug: str
    items: List[ContentItem] = Field(default_factory=list)
    total: int = 0


class ReviewListResponse(BaseModel):
    reviews: List[ReviewRecord] = Field(default_factory=list)
    count: int = 0
    language: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class FeaturedReviewResponse(BaseModel):
    review: Optional[ReviewRecord] = None


class CacheInvalidationResponse(BaseModel):
    removed: int
    prefix: Optional[str] = None
