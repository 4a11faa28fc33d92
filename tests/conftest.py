# tests/conftest.py
"""Shared fixtures: a controllable clock, an isolated FetchCache, and a fake
upstream served through httpx.MockTransport. No real network I/O happens."""

from __future__ import annotations

import httpx
import pytest

from backend.app.core.memory_cache import FetchCache
from backend.app.upstream.connection import ContentClient
from tests.helpers import BASE_URL, FakeTimer, FakeUpstream


@pytest.fixture
def fake_timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def fetch_cache(fake_timer: FakeTimer) -> FetchCache:
    return FetchCache(capacity=50, timer=fake_timer)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_client(fetch_cache: FetchCache):
    """Factory for ContentClients wired to a mock transport and isolated cache."""

    def factory(handler, **overrides) -> ContentClient:
        options = dict(
            base_url=BASE_URL,
            auth_user="",
            auth_pass="",
            timeout=5.0,
            freshness={},
            cache=fetch_cache,
            transport=httpx.MockTransport(handler),
        )
        options.update(overrides)
        return ContentClient(**options)

    return factory


@pytest.fixture
def client(make_client, upstream: FakeUpstream) -> ContentClient:
    return make_client(upstream)
