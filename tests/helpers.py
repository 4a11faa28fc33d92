# tests/helpers.py
"""Fake upstream pieces shared by the unit tests."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Dict, List, Optional

import httpx


SITE_ROOT = "https://tours.example.com"
BASE_URL = f"{SITE_ROOT}/wp-json/wp/v2"
API_PREFIX = "/wp-json/wp/v2"


class FakeTimer:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def json_response(
    data: Any, total: Optional[int] = None, total_pages: Optional[int] = None, status: int = 200
) -> httpx.Response:
    headers = {}
    if total is not None:
        headers["X-WP-Total"] = str(total)
    if total_pages is not None:
        headers["X-WP-TotalPages"] = str(total_pages)
    return httpx.Response(status, json=data, headers=headers)


class FakeUpstream:
    """Routes requests by API path to handlers and records every request.

    A route handler receives the ``httpx.Request`` and returns either an
    ``httpx.Response`` or plain JSON data. Unrouted paths answer 404.
    """

    def __init__(self):
        self.routes: Dict[str, Callable[[httpx.Request], Any]] = {}
        self.requests: List[httpx.Request] = []
        self.delays: Dict[str, float] = {}

    def route(self, path: str, handler: Any) -> None:
        self.routes[path] = handler if callable(handler) else (lambda request: handler)

    def calls_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if self._path(r) == path]

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        return path[len(API_PREFIX):] if path.startswith(API_PREFIX) else path

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = self._path(request)
        delay = self.delays.get(request.url.params.get("search", path))
        if delay:
            await asyncio.sleep(delay)
        handler = self.routes.get(path)
        if handler is None:
            return httpx.Response(404, json={"code": "rest_no_route"})
        result = handler(request)
        if isinstance(result, httpx.Response):
            return result
        return json_response(result)


def item(item_id: int, title: str = "", **extra) -> Dict[str, Any]:
    raw = {"id": item_id, "slug": f"tour-{item_id}", "title": {"rendered": title or f"Tour {item_id}"}}
    raw.update(extra)
    return raw


def term(term_id: int, slug: str, **extra) -> Dict[str, Any]:
    raw = {"id": term_id, "slug": slug, "name": slug.title(), "parent": 0, "count": 3}
    raw.update(extra)
    return raw
