# backend/app/services/search_service.py
import asyncio
import math
import re
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from backend.app.config import settings, TopicsConfig, TourTypeConfig, DurationConfig
from backend.app.core.errors import Unauthorized, UpstreamFailure
from backend.app.upstream import content as upstream_content
from backend.app.upstream.connection import ContentClient
from backend.app.upstream.schemas import ClassificationTerm, ContentItem, Page

_DAYS_IN_TEXT = re.compile(r"(\d+)\s*days?", re.I)
_DAYS_IN_TITLE = re.compile(r"(\d+)\s*days?(?:/|[^0-9]|$)", re.I)


def merge_unique(result_lists: Iterable[Sequence[ContentItem]]) -> List[ContentItem]:
    """Concatenate result lists, keeping the first occurrence of each item id."""
    seen = set()
    merged: List[ContentItem] = []
    for results in result_lists:
        for item in results:
            if item.id in seen:
                continue
            seen.add(item.id)
            merged.append(item)
    return merged


def paginate(items: Sequence[ContentItem], page: int, per_page: int) -> Page[ContentItem]:
    page = max(page, 1)
    per_page = max(per_page, 1)
    start = (page - 1) * per_page
    return Page[ContentItem](
        items=list(items[start : start + per_page]),
        total=len(items),
        total_pages=math.ceil(len(items) / per_page),
        page=page,
    )


def extract_item_days(item: ContentItem) -> int:
    """Day count of an item: metadata first, then text patterns, else 0."""
    try:
        days = int(item.meta.get("duration_days") or 0)
        if days > 0:
            return days
    except (TypeError, ValueError):
        pass

    duration_text = item.meta.get("duration_text")
    if isinstance(duration_text, str):
        match = _DAYS_IN_TEXT.search(duration_text)
        if match:
            return int(match.group(1))

    title = item.title.lower()
    match = _DAYS_IN_TITLE.search(title)
    if match:
        return int(match.group(1))

    if "ticket" in title or "admission" in title:
        return 1
    return 0


def _title_contains_any(item: ContentItem, keywords: Iterable[str]) -> bool:
    title = item.title.lower()
    return any(k.lower() in title for k in keywords if k)


class SearchService:
    """Resolves "every item under a topic", whether or not the topic is a
    first-class classification upstream."""

    def __init__(
        self,
        client: ContentClient,
        topics: Optional[TopicsConfig] = None,
        tour_types: Optional[Dict[str, TourTypeConfig]] = None,
        durations: Optional[Dict[str, DurationConfig]] = None,
    ):
        self.client = client
        self.topics = topics or settings.topics
        self.tour_types = settings.tour_types if tour_types is None else tour_types
        self.durations = settings.durations if durations is None else durations

    def keywords_for(self, topic: str) -> List[str]:
        return list(self.topics.keywords.get(topic, []))

    async def _resolve_term(self, slug: str) -> Optional[ClassificationTerm]:
        try:
            return await upstream_content.get_term_by_slug(
                self.client, self.topics.taxonomy, slug
            )
        except Unauthorized:
            raise
        except UpstreamFailure as e:
            logger.warning(f"SearchService: could not resolve term '{slug}': {e}")
            return None

    async def related_topics(self, topic: str) -> List[ClassificationTerm]:
        related = []
        for slug in self.topics.related.get(topic, []):
            term = await self._resolve_term(slug)
            if term is not None:
                related.append(term)
        return related

    async def resolve_topic_terms(self, topic: str) -> List[ClassificationTerm]:
        terms = []
        primary = await self._resolve_term(topic)
        if primary is not None:
            terms.append(primary)
        for term in await self.related_topics(topic):
            if all(t.id != term.id for t in terms):
                terms.append(term)
        return terms

    async def resolve_topic(
        self, topic: str, page: int = 1, per_page: int = 12, lang: Optional[str] = None
    ) -> Page[ContentItem]:
        method_name = f"SearchService.resolve_topic(topic='{topic}', page={page})"
        page = max(page, 1)
        per_page = max(per_page, 1)

        terms = await self.resolve_topic_terms(topic)
        if terms:
            logger.debug(
                f"{method_name}: classification path with terms {[t.slug for t in terms]}"
            )
            return await upstream_content.get_items_by_classification(
                self.client,
                self.topics.taxonomy,
                [t.id for t in terms],
                page=page,
                per_page=per_page,
                lang=lang,
            )

        keywords = self.keywords_for(topic)
        if not keywords:
            logger.info(f"{method_name}: no classification and no keywords, empty result")
            return Page[ContentItem].empty(page)

        logger.debug(f"{method_name}: keyword fallback over {keywords}")
        merged = await self._merge_keyword_results(keywords, lang)
        return paginate(merged, page, per_page)

    async def _merge_keyword_results(
        self, keywords: Sequence[str], lang: Optional[str]
    ) -> List[ContentItem]:
        """Run one bounded search per keyword and merge them in keyword order.

        Sub-queries run concurrently, but merging waits for all of them, so
        the result does not depend on completion order. A failed sub-query
        contributes nothing; if every one was rejected for credentials the
        rejection is raised instead of an empty listing.
        """
        outcomes = await asyncio.gather(
            *(
                upstream_content.search_items(
                    self.client,
                    query=keyword,
                    page=1,
                    per_page=self.topics.search_per_page,
                    lang=lang,
                )
                for keyword in keywords
            ),
            return_exceptions=True,
        )

        result_lists = []
        rejections = []
        for keyword, outcome in zip(keywords, outcomes):
            if isinstance(outcome, Unauthorized):
                rejections.append(outcome)
                logger.error(f"SearchService: keyword '{keyword}' rejected: {outcome}")
            elif isinstance(outcome, UpstreamFailure):
                logger.warning(f"SearchService: keyword '{keyword}' skipped: {outcome}")
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result_lists.append(outcome.items)

        if rejections and len(rejections) == len(keywords):
            raise rejections[0]
        return merge_unique(result_lists)

    async def items_by_type(self, type_slug: str, lang: Optional[str] = None) -> List[ContentItem]:
        config = self.tour_types.get(type_slug)
        if config is None:
            return []

        if config.activity:
            try:
                result = await upstream_content.get_items_by_classification(
                    self.client,
                    upstream_content.ACTIVITY_TAXONOMY,
                    [config.activity],
                    per_page=upstream_content.MAX_PER_PAGE,
                    lang=lang,
                )
                if result.items:
                    if config.title_keywords:
                        return [
                            item
                            for item in result.items
                            if _title_contains_any(item, config.title_keywords)
                        ]
                    return result.items
            except Unauthorized:
                raise
            except UpstreamFailure as e:
                logger.error(
                    f"SearchService.items_by_type: activity {config.activity} lookup failed: {e}"
                )

        if not config.keywords:
            return []
        merged = await self._merge_keyword_results(config.keywords, lang)
        if config.exclude_keywords:
            merged = [
                item
                for item in merged
                if not _title_contains_any(item, config.exclude_keywords)
            ]
        return merged

    async def items_by_duration(
        self, duration_slug: str, lang: Optional[str] = None
    ) -> List[ContentItem]:
        bucket = self.durations.get(duration_slug)
        if bucket is None:
            return []

        per_page = upstream_content.MAX_PER_PAGE
        first = await upstream_content.get_newest_items(
            self.client, page=1, per_page=per_page, lang=lang
        )
        items = list(first.items)
        if len(first.items) == per_page:
            try:
                second = await upstream_content.get_newest_items(
                    self.client, page=2, per_page=per_page, lang=lang
                )
                items.extend(second.items)
            except UpstreamFailure as e:
                logger.warning(f"SearchService.items_by_duration: second batch skipped: {e}")

        matched = []
        for item in merge_unique([items]):
            days = extract_item_days(item)
            if days < bucket.min_days:
                continue
            if bucket.max_days is not None and days > bucket.max_days:
                continue
            matched.append(item)
        logger.debug(
            f"SearchService.items_by_duration: {len(matched)}/{len(items)} items in '{duration_slug}'"
        )
        return matched
