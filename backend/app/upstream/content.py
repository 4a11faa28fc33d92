# backend/app/upstream/content.py
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import unquote
from loguru import logger

from backend.app.config import settings
from backend.app.core.errors import Unauthorized, UpstreamFailure
from .connection import ContentClient
from .schemas import ClassificationTerm, ContentItem, Page, parse_records

ITEMS_ENDPOINT = "/tour"
DESTINATION_TAXONOMY = "tour-destination"
ACTIVITY_TAXONOMY = "tour-activity"
MAX_PER_PAGE = 100  # upstream hard limit

# Projection for list views; cards never need the full body.
LIST_FIELDS = (
    "id,slug,title,excerpt,featured_media,tour_category,tour_tag,"
    "tour-destination,tour-activity,featured_image_url,tour_meta"
)


def language_params(lang: Optional[str]) -> Dict[str, str]:
    if lang and lang != settings.upstream.default_language:
        return {"lang": lang}
    return {}


def normalize_slug(slug: str) -> str:
    """Percent-decode a slug so encoded and decoded CJK slugs share one key."""
    try:
        return unquote(slug, errors="strict")
    except UnicodeDecodeError:
        return slug


def _to_page(response, page: int) -> Page[ContentItem]:
    items = parse_records(response.data, ContentItem)
    return Page[ContentItem](
        items=items,
        total=response.total,
        total_pages=response.total_pages,
        page=page,
    )


async def get_items(
    client: ContentClient,
    params: Optional[Dict[str, Any]] = None,
    lang: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Page[ContentItem]:
    params = dict(params or {})
    is_list_view = "slug" not in params and int(params.get("per_page") or 0) > 1
    query: Dict[str, Any] = {}
    if is_list_view:
        query["_fields"] = LIST_FIELDS
    query.update(language_params(lang))
    query.update(params)
    response = await client.get(ITEMS_ENDPOINT, query, timeout=timeout)
    if is_list_view:
        logger.debug(f"get_items: list view returned {len(response.data or [])} items")
    return _to_page(response, int(params.get("page") or 1))


async def get_newest_items(
    client: ContentClient, page: int = 1, per_page: int = 12, lang: Optional[str] = None
) -> Page[ContentItem]:
    return await get_items(
        client,
        {"orderby": "date", "order": "desc", "page": page, "per_page": per_page},
        lang=lang,
    )


async def get_item_by_slug(
    client: ContentClient, slug: str, lang: Optional[str] = None
) -> Optional[ContentItem]:
    result = await get_items(client, {"slug": normalize_slug(slug)}, lang=lang)
    return result.items[0] if result.items else None


async def get_item_by_id(client: ContentClient, item_id: int) -> Optional[ContentItem]:
    try:
        response = await client.get(f"{ITEMS_ENDPOINT}/{item_id}")
    except Unauthorized:
        raise
    except UpstreamFailure as e:
        logger.warning(f"get_item_by_id: item {item_id} unavailable: {e}")
        return None
    return ContentItem.from_upstream(response.data)


async def get_terms(
    client: ContentClient, taxonomy: str, params: Optional[Dict[str, Any]] = None
) -> List[ClassificationTerm]:
    response = await client.get(f"/{taxonomy}", params or {})
    return parse_records(response.data, ClassificationTerm)


async def get_term_by_slug(
    client: ContentClient, taxonomy: str, slug: str
) -> Optional[ClassificationTerm]:
    terms = await get_terms(client, taxonomy, {"slug": normalize_slug(slug)})
    return terms[0] if terms else None


async def get_destination_with_language_count(
    client: ContentClient, slug: str, lang: Optional[str] = None
) -> Optional[ClassificationTerm]:
    """Destination term whose count reflects only items in ``lang``.

    The term's own count spans all languages; a one-item query filtered by
    term and language yields the per-language total from the pagination
    header. Any failure there keeps the original count.
    """
    term = await get_term_by_slug(client, DESTINATION_TAXONOMY, slug)
    if term is None or not lang:
        return term
    try:
        response = await client.get(
            ITEMS_ENDPOINT,
            {DESTINATION_TAXONOMY: term.id, "lang": lang, "per_page": 1},
        )
    except Unauthorized:
        raise
    except UpstreamFailure as e:
        logger.warning(
            f"get_destination_with_language_count: count for '{slug}' ({lang}) unavailable: {e}"
        )
        return term
    return term.model_copy(update={"count": response.total})


async def get_items_by_classification(
    client: ContentClient,
    taxonomy: str,
    term_ids: Sequence[int],
    page: int = 1,
    per_page: int = 12,
    lang: Optional[str] = None,
) -> Page[ContentItem]:
    return await get_items(
        client,
        {
            taxonomy: sorted(set(term_ids)),
            "orderby": "date",
            "order": "desc",
            "page": page,
            "per_page": per_page,
        },
        lang=lang,
    )


async def search_items(
    client: ContentClient,
    query: str = "",
    destinations: Sequence[Any] = (),
    activity: Any = None,
    orderby: str = "date",
    order: str = "desc",
    page: int = 1,
    per_page: int = 12,
    lang: Optional[str] = None,
    timeout: Optional[float] = None,
) -> Page[ContentItem]:
    """Full-text search with optional classification filters.

    ``destinations`` and ``activity`` accept term ids or slugs; slugs that do
    not resolve are ignored.
    """
    params: Dict[str, Any] = {
        "orderby": orderby,
        "order": order,
        "page": page,
        "per_page": per_page,
    }
    if query:
        params["search"] = query

    destination_ids = []
    for destination in destinations:
        if isinstance(destination, int):
            destination_ids.append(destination)
            continue
        term = await get_term_by_slug(client, DESTINATION_TAXONOMY, str(destination))
        if term is not None:
            destination_ids.append(term.id)
    if destination_ids:
        params[DESTINATION_TAXONOMY] = destination_ids

    if activity:
        if isinstance(activity, int):
            params[ACTIVITY_TAXONOMY] = activity
        else:
            term = await get_term_by_slug(client, ACTIVITY_TAXONOMY, str(activity))
            if term is not None:
                params[ACTIVITY_TAXONOMY] = term.id

    return await get_items(client, params, lang=lang, timeout=timeout)
