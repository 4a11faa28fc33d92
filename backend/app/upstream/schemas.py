# backend/app/upstream/schemas.py
"""Typed records for the loosely structured upstream JSON.

Every upstream payload goes through one of the ``from_upstream`` constructors
here exactly once; the services downstream never poke into raw dicts.
"""
from typing import Any, Dict, Generic, List, Optional, TypeVar
from pydantic import BaseModel, Field
from loguru import logger

from backend.app.core.text import clean_upstream_text

T = TypeVar("T")

# Upstream fields that carry lists of classification term ids.
CLASSIFICATION_FIELDS = (
    "tour-destination",
    "tour-activity",
    "tour_category",
    "tour_tag",
    "categories",
    "tags",
)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _as_id_list(value: Any) -> List[int]:
    if isinstance(value, (int, str)):
        value = [value]
    if not isinstance(value, list):
        return []
    ids = [_as_int(v, -1) for v in value]
    return [i for i in ids if i > 0]


class ContentItem(BaseModel):
    id: int
    slug: str = ""
    title: str = ""
    excerpt: str = ""
    classifications: Dict[str, List[int]] = Field(default_factory=dict)
    # price, duration_days, duration_text, location, ...
    meta: Dict[str, Any] = Field(default_factory=dict)
    featured_image_url: Optional[str] = None

    @classmethod
    def from_upstream(cls, raw: Any) -> Optional["ContentItem"]:
        if not isinstance(raw, dict):
            return None
        item_id = _as_int(raw.get("id"), -1)
        if item_id <= 0:
            return None
        classifications = {
            field: _as_id_list(raw[field])
            for field in CLASSIFICATION_FIELDS
            if field in raw
        }
        meta = raw.get("tour_meta") or raw.get("meta") or {}
        return cls(
            id=item_id,
            slug=_as_str(raw.get("slug")),
            title=clean_upstream_text(raw.get("title")),
            excerpt=clean_upstream_text(raw.get("excerpt")),
            classifications=classifications,
            meta=meta if isinstance(meta, dict) else {},
            featured_image_url=raw.get("featured_image_url") or None,
        )


class ClassificationTerm(BaseModel):
    id: int
    slug: str
    name: str = ""
    parent_id: int = 0
    count: int = 0
    taxonomy: str = ""
    description: str = ""

    @property
    def is_root(self) -> bool:
        return self.parent_id == 0

    @classmethod
    def from_upstream(cls, raw: Any) -> Optional["ClassificationTerm"]:
        if not isinstance(raw, dict):
            return None
        term_id = _as_int(raw.get("id"), -1)
        slug = _as_str(raw.get("slug"))
        if term_id <= 0 or not slug:
            return None
        return cls(
            id=term_id,
            slug=slug,
            name=clean_upstream_text(raw.get("name")),
            parent_id=max(_as_int(raw.get("parent")), 0),
            count=max(_as_int(raw.get("count")), 0),
            taxonomy=_as_str(raw.get("taxonomy")),
            description=clean_upstream_text(raw.get("description")),
        )


class ReviewRecord(BaseModel):
    author_name: str = ""
    # 0 means missing/malformed; real ratings are 1..5
    rating: float = 0.0
    text: str = ""
    time: int = 0
    language: str = ""
    images: List[str] = Field(default_factory=list)
    relative_time: str = ""

    @classmethod
    def from_upstream(cls, raw: Any) -> Optional["ReviewRecord"]:
        if not isinstance(raw, dict):
            return None
        rating = _as_float(raw.get("rating"))
        if not 1 <= rating <= 5:
            rating = 0.0
        images = raw.get("images")
        return cls(
            author_name=_as_str(raw.get("author_name")),
            rating=rating,
            text=_as_str(raw.get("text")),
            time=max(_as_int(raw.get("time")), 0),
            language=_as_str(raw.get("language")),
            images=[i for i in images if isinstance(i, str)]
            if isinstance(images, list)
            else [],
            relative_time=_as_str(raw.get("relative_time_description")),
        )


class ReviewFeed(BaseModel):
    rating: float = 0.0
    total: int = 0
    reviews: List[ReviewRecord] = Field(default_factory=list)

    @classmethod
    def from_upstream(cls, raw: Any) -> "ReviewFeed":
        """Accepts either the aggregate object or a bare review array."""
        if isinstance(raw, list):
            reviews = parse_records(raw, ReviewRecord)
            rated = [r.rating for r in reviews if r.rating > 0]
            return cls(
                rating=sum(rated) / len(rated) if rated else 0.0,
                total=len(reviews),
                reviews=reviews,
            )
        if not isinstance(raw, dict):
            logger.warning(
                f"ReviewFeed.from_upstream: unexpected payload type {type(raw).__name__}"
            )
            return cls()
        reviews = parse_records(raw.get("reviews") or [], ReviewRecord)
        return cls(
            rating=_as_float(raw.get("rating")),
            total=_as_int(raw.get("user_ratings_total", raw.get("total")), len(reviews)),
            reviews=reviews,
        )


class Page(BaseModel, Generic[T]):
    items: List[T] = Field(default_factory=list)
    total: int = 0
    total_pages: int = 0
    page: int = 1

    @classmethod
    def empty(cls, page: int = 1) -> "Page[T]":
        return cls(items=[], total=0, total_pages=0, page=page)


class RankedResult(BaseModel):
    record: ReviewRecord
    score: float


def parse_records(raw_list: Any, model) -> list:
    """Build ``model`` records from a raw list, skipping malformed entries."""
    if not isinstance(raw_list, list):
        return []
    records = []
    skipped = 0
    for raw in raw_list:
        record = model.from_upstream(raw)
        if record is None:
            skipped += 1
        else:
            records.append(record)
    if skipped:
        logger.debug(f"parse_records: skipped {skipped} malformed {model.__name__} entries")
    return records
