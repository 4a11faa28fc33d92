# backend/app/services/review_service.py
import time
from typing import Any, Callable, Iterable, List, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, Field

from backend.app.config import settings, ReviewsConfig
from backend.app.core.text import count_keyword_hits, matches_script, normalize_text
from backend.app.upstream.connection import ContentClient
from backend.app.upstream.reviews import get_review_feed
from backend.app.upstream.schemas import RankedResult, ReviewRecord

SECONDS_PER_DAY = 86400


class TopicContext(BaseModel):
    keywords: List[str] = Field(default_factory=list)
    language: Optional[str] = None

    @classmethod
    def for_locale(
        cls,
        lang: Optional[str],
        extra_keywords: Sequence[str] = (),
        config: Optional[ReviewsConfig] = None,
    ) -> "TopicContext":
        """Locale keywords first, then the default locale's, then extras."""
        table = (config or settings.reviews).locale_keywords
        default_lang = settings.upstream.default_language
        keywords: List[str] = []
        own = (table.get(lang) or table.get(lang.split("-")[0], [])) if lang else []
        sources = [own]
        if lang != default_lang:
            sources.append(table.get(default_lang, []))
        sources.append(list(extra_keywords))
        for source in sources:
            for keyword in source:
                if keyword and keyword not in keywords:
                    keywords.append(keyword)
        return cls(keywords=keywords, language=lang or None)


class ReviewService:
    """Filters, scores and ranks reviews against a topic.

    Ordering contract: keyword relevance beats rating, which beats
    length and recency. The hit weight is raised at construction if the
    configured one could let a zero-hit review outscore a one-hit review.
    """

    def __init__(
        self,
        config: Optional[ReviewsConfig] = None,
        now: Callable[[], float] = time.time,
    ):
        self.config = config or settings.reviews
        self.now = now
        self.hit_weight = max(self.config.hit_weight, self._max_non_topical_gap() + 1)
        if self.hit_weight != self.config.hit_weight:
            logger.warning(
                f"ReviewService: hit_weight {self.config.hit_weight} too small, using {self.hit_weight}"
            )

    def _max_non_topical_gap(self) -> float:
        c = self.config
        rating_span = max(5 - c.min_rating, 0) * c.rating_weight
        return rating_span + c.length_cap / c.length_divisor + c.recency_weight

    def is_eligible(self, review: ReviewRecord) -> bool:
        return review.rating >= self.config.min_rating and bool(review.text.strip())

    def language_pool(
        self, eligible: List[ReviewRecord], language: Optional[str]
    ) -> List[ReviewRecord]:
        if not language:
            return eligible
        prefix = language.lower().split("-")[0]
        preferred = [
            r
            for r in eligible
            if r.language.lower().startswith(prefix) or matches_script(r.text, prefix)
        ]
        return preferred or eligible

    def _recency_term(self, review: ReviewRecord) -> float:
        if review.time <= 0:
            return 0.0
        age_days = max(self.now() - review.time, 0) / SECONDS_PER_DAY
        freshness = max(0.0, 1 - age_days / self.config.recency_window_days)
        return self.config.recency_weight * freshness

    def score(self, review: ReviewRecord, hits: int) -> float:
        c = self.config
        return (
            hits * self.hit_weight
            + review.rating * c.rating_weight
            + min(len(review.text), c.length_cap) / c.length_divisor
            + self._recency_term(review)
        )

    def rank_scored(
        self,
        reviews: Iterable[Any],
        context: TopicContext,
        count: Optional[int] = None,
    ) -> List[RankedResult]:
        try:
            return self._rank(reviews, context, count)
        except Exception as e:
            logger.error(
                f"ReviewService.rank_scored: ranking failed, returning empty list: {e}",
                exc_info=True,
            )
            return []

    def _rank(
        self, reviews: Iterable[Any], context: TopicContext, count: Optional[int]
    ) -> List[RankedResult]:
        records = []
        for review in reviews or []:
            if not isinstance(review, ReviewRecord):
                review = ReviewRecord.from_upstream(review)
            if review is not None:
                records.append(review)

        eligible = [r for r in records if self.is_eligible(r)]
        if not eligible:
            return []

        pool = self.language_pool(eligible, context.language)
        hits = {id(r): count_keyword_hits(normalize_text(r.text), context.keywords) for r in pool}
        matched = [r for r in pool if hits[id(r)] > 0]
        final_pool = matched or pool
        logger.debug(
            f"ReviewService: {len(records)} reviews, {len(eligible)} eligible, "
            f"{len(pool)} in language pool, {len(matched)} matched"
        )

        scored = [RankedResult(record=r, score=self.score(r, hits[id(r)])) for r in final_pool]
        scored.sort(key=lambda x: (x.score, x.record.rating, x.record.time), reverse=True)

        seen = set()
        result: List[RankedResult] = []
        for item in scored:
            identity = (item.record.author_name, item.record.time)
            if identity in seen:
                continue
            seen.add(identity)
            result.append(item)
            if count is not None and len(result) >= count:
                break
        return result

    def rank(
        self, reviews: Iterable[Any], context: TopicContext, count: Optional[int] = None
    ) -> List[ReviewRecord]:
        if count is not None and count < 1:
            return []
        return [x.record for x in self.rank_scored(reviews, context, count)]

    def pick_featured(
        self, reviews: Iterable[Any], context: TopicContext
    ) -> Optional[ReviewRecord]:
        top = self.rank(reviews, context, count=1)
        return top[0] if top else None

    async def ranked_reviews(
        self,
        client: ContentClient,
        context: TopicContext,
        count: Optional[int] = None,
    ) -> List[ReviewRecord]:
        feed = await get_review_feed(client)
        return self.rank(feed.reviews, context, count)


review_service = ReviewService()


def get_review_service_instance() -> ReviewService:
    return review_service
