# backend/app/upstream/connection.py
import asyncio
import time
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import unquote, urlsplit, urlunsplit

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict

from backend.app.config import settings
from backend.app.core.errors import (
    ConfigurationError,
    Unauthorized,
    UpstreamError,
    UpstreamTimeout,
)
from backend.app.core.memory_cache import FetchCache, cache_key, fetch_cache

TOTAL_HEADER = "X-WP-Total"
TOTAL_PAGES_HEADER = "X-WP-TotalPages"
API_ROOT_MARKER = "/wp-json"


class UpstreamResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: Any
    total: int
    total_pages: int


def resolve_credentials(
    base_url: str, fallback_user: str = "", fallback_pass: str = ""
) -> Tuple[str, Optional[Tuple[str, str]]]:
    """Split userinfo off ``base_url`` and pick the basic-auth pair.

    Credentials embedded in the URL win; otherwise the fallback pair is used
    when both halves are present. The returned URL never carries userinfo.
    """
    parts = urlsplit(base_url.rstrip("/"))
    username = unquote(parts.username or "")
    password = unquote(parts.password or "")
    if not (username and password):
        username, password = fallback_user, fallback_pass

    netloc = parts.netloc.rsplit("@", 1)[-1]
    clean_url = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    auth = (username, password) if username and password else None
    return clean_url, auth


def freshness_for(endpoint: str, table: Mapping[str, Optional[float]], default=None):
    """Freshness window (seconds) for an endpoint; None caches until invalidated.

    Exact matches win, then the longest table prefix that ends on a path
    segment boundary ("/tour" covers "/tour/12" but not "/tour-destination").
    """
    path = endpoint.split("?", 1)[0]
    if path in table:
        return table[path]
    best = None
    for prefix in table:
        if path.startswith(prefix) and path[len(prefix)] == "/":
            if best is None or len(prefix) > len(best):
                best = prefix
    return table[best] if best is not None else default


def encode_params(params: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    encoded = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            encoded[key] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            encoded[key] = ",".join(str(v) for v in value)
        else:
            encoded[key] = str(value)
    return encoded


def _header_int(headers: httpx.Headers, name: str) -> Optional[int]:
    value = headers.get(name)
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class ContentClient:
    """Authenticated, timeout-bounded and cached access to the content API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        auth_user: Optional[str] = None,
        auth_pass: Optional[str] = None,
        timeout: Optional[float] = None,
        freshness: Optional[Mapping[str, Optional[float]]] = None,
        cache: Optional[FetchCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        upstream = settings.upstream
        raw_base_url = base_url if base_url is not None else upstream.base_url
        self.base_url, self._auth = resolve_credentials(
            raw_base_url,
            upstream.auth_user if auth_user is None else auth_user,
            upstream.auth_pass if auth_pass is None else auth_pass,
        )
        self.timeout = timeout if timeout is not None else upstream.timeout_seconds
        self.freshness = dict(settings.freshness if freshness is None else freshness)
        self.cache = cache if cache is not None else fetch_cache
        self._http = httpx.AsyncClient(
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "User-Agent": upstream.user_agent,
            },
            timeout=httpx.Timeout(self.timeout),
            auth=self._auth,
        )
        logger.info(
            f"ContentClient initialized. Base URL: {self.base_url or '<unset>'}, "
            f"auth: {'basic' if self._auth else 'none'}, timeout: {self.timeout}s"
        )

    @property
    def site_root(self) -> str:
        return self.base_url.split(API_ROOT_MARKER, 1)[0]

    def _url_for(self, endpoint: str) -> str:
        if not self.base_url:
            raise ConfigurationError(
                "Upstream API URL is not defined. Set upstream.base_url or UPSTREAM_API_URL."
            )
        # Endpoints under /wp-json live outside the collection namespace.
        if endpoint.startswith(API_ROOT_MARKER):
            return f"{self.site_root}{endpoint}"
        return f"{self.base_url}{endpoint}"

    async def close(self):
        await self._http.aclose()
        logger.info("ContentClient HTTP session closed.")

    async def get(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> UpstreamResponse:
        """Cached GET of ``endpoint``; concurrent identical calls share one request."""
        query = encode_params(params)
        key = cache_key(endpoint, query)
        ttl = freshness_for(endpoint, self.freshness, self.cache.default_ttl)
        budget = self.timeout if timeout is None else timeout
        return await self.cache.fetch(
            key, lambda: self._request(endpoint, query, budget), ttl=ttl
        )

    async def _request(
        self, endpoint: str, query: Dict[str, str], timeout: float
    ) -> UpstreamResponse:
        method_name = "ContentClient._request"
        url = self._url_for(endpoint)
        start_time = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._http.get(url, params=query, timeout=timeout), timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"{method_name}: {endpoint} timed out after {timeout}s")
            raise UpstreamTimeout(
                f"Upstream call to {endpoint} exceeded {timeout}s", endpoint=endpoint
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"{method_name}: transport error on {endpoint}: {e}")
            raise UpstreamError(
                f"Upstream call to {endpoint} failed: {type(e).__name__}", endpoint=endpoint
            ) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(f"[API] {endpoint} - {duration_ms:.0f}ms - {response.status_code}")

        if response.status_code in (401, 403):
            logger.error(
                f"{method_name}: upstream rejected credentials for {endpoint} ({response.status_code})"
            )
            raise Unauthorized(
                f"Upstream rejected credentials: {response.status_code}",
                endpoint=endpoint,
                status_code=response.status_code,
            )
        if not response.is_success:
            logger.warning(
                f"{method_name}: {endpoint} returned {response.status_code}. Body: {response.text[:500]}"
            )
            raise UpstreamError(
                f"Upstream API error: {response.status_code} {response.reason_phrase}",
                endpoint=endpoint,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"{method_name}: {endpoint} returned a non-JSON body")
            raise UpstreamError(
                f"Upstream returned invalid JSON for {endpoint}",
                endpoint=endpoint,
                status_code=response.status_code,
            ) from e

        count = len(data) if isinstance(data, list) else 0
        total = _header_int(response.headers, TOTAL_HEADER)
        total_pages = _header_int(response.headers, TOTAL_PAGES_HEADER)
        return UpstreamResponse(
            data=data,
            total=total if total is not None else count,
            total_pages=total_pages if total_pages is not None else (1 if count else 0),
        )


_content_client: Optional[ContentClient] = None


def initialize_content_client(**overrides) -> ContentClient:
    global _content_client
    if _content_client is None:
        logger.info("Initializing shared ContentClient...")
        _content_client = ContentClient(**overrides)
    else:
        logger.debug("Shared ContentClient already initialized.")
    return _content_client


async def close_content_client():
    global _content_client
    if _content_client is not None:
        await _content_client.close()
        _content_client = None


def get_content_client() -> ContentClient:
    if _content_client is None:
        logger.warning("ContentClient requested before startup. Initializing now.")
        return initialize_content_client()
    return _content_client
