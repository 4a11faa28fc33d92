# backend/app/core/memory_cache.py
"""Process-wide single-flight cache for upstream fetches.

Entries hold the in-flight (or finished) future of an upstream call, so
concurrent callers asking for the same key while an entry is fresh share one
network operation. Failed or cancelled operations are dropped immediately;
nothing negative is ever replayed.

The get-or-create path in ``FetchCache.fetch`` contains no suspension point,
which makes it atomic under asyncio's cooperative scheduling. Do not share an
instance across threads without wrapping ``fetch`` in a lock.
"""
import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Mapping, Optional

from cachetools import Cache
from loguru import logger
from pydantic import BaseModel, ConfigDict

from ..config import settings

_USE_DEFAULT = object()


def cache_key(endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Stable key for an endpoint and its parameter map (order-insensitive)."""
    sorted_params = {k: params[k] for k in sorted(params)} if params else {}
    return f"{endpoint}:{json.dumps(sorted_params, ensure_ascii=False, default=str)}"


def _key_under_prefix(key: str, prefix: str) -> bool:
    if not key.startswith(prefix):
        return False
    if not prefix or prefix[-1] in ":/":
        return True
    return key[len(prefix) : len(prefix) + 1] in (":", "/")


class CacheEntry(BaseModel):
    # result may be an asyncio future
    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    created_at: float
    result: Any
    # None: fresh until explicitly invalidated
    ttl: Optional[float] = None

    def is_fresh(self, now: float) -> bool:
        return self.ttl is None or now - self.created_at <= self.ttl

    def has_failed(self) -> bool:
        if not asyncio.isfuture(self.result) or not self.result.done():
            return False
        return self.result.cancelled() or self.result.exception() is not None


class FetchCache:
    def __init__(
        self,
        capacity: int = 500,
        default_ttl: Optional[float] = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        if capacity < 1:
            raise ValueError("FetchCache capacity must be at least 1")
        self.capacity = capacity
        self.default_ttl = default_ttl
        self.timer = timer
        # cachetools.Cache evicts in insertion order once maxsize is reached;
        # put() always re-inserts, so insertion order == creation order.
        self._entries: Cache = Cache(maxsize=capacity)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self.timer()):
            logger.trace(f"FetchCache: entry expired for key '{key}'")
            self._drop(entry)
            return None
        if entry.has_failed():
            self._drop(entry)
            return None
        return entry

    def put(self, key: str, result: Any, ttl: Any = _USE_DEFAULT) -> CacheEntry:
        now = self.timer()
        self._entries.pop(key, None)
        self.prune(now)
        entry = CacheEntry(
            key=key,
            created_at=now,
            result=result,
            ttl=self.default_ttl if ttl is _USE_DEFAULT else ttl,
        )
        if len(self._entries) >= self.capacity:
            oldest = next(iter(self._entries))
            logger.debug(f"FetchCache: at capacity ({self.capacity}), evicting '{oldest}'")
        self._entries[key] = entry
        return entry

    def prune(self, now: Optional[float] = None) -> int:
        """Drop expired entries, then the oldest ones while over capacity.

        Returns the number of entries removed.
        """
        now = self.timer() if now is None else now
        removed = 0
        for entry in list(self._entries.values()):
            if not entry.is_fresh(now):
                self._drop(entry)
                removed += 1
        if len(self._entries) > self.capacity:
            by_age = sorted(self._entries.values(), key=lambda e: e.created_at)
            for entry in by_age[: len(self._entries) - self.capacity]:
                self._drop(entry)
                removed += 1
        if removed:
            logger.trace(f"FetchCache: pruned {removed} entries")
        return removed

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop entries whose endpoint is ``prefix`` or lies below it.

        "/tour" removes "/tour" and "/tour/12" keys but keeps "/tour-destination".
        A prefix already ending in ":" or "/" matches literally.
        """
        keys = [k for k in self._entries if _key_under_prefix(k, prefix)]
        for k in keys:
            del self._entries[k]
        logger.info(f"FetchCache: invalidated {len(keys)} entries with prefix '{prefix}'")
        return len(keys)

    def clear(self) -> int:
        removed = len(self._entries)
        self._entries.clear()
        logger.info(f"FetchCache: cleared {removed} entries")
        return removed

    async def fetch(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Any = _USE_DEFAULT,
    ) -> Any:
        """Return the shared result for ``key``, running ``factory`` on a miss."""
        entry = self.get(key)
        if entry is not None:
            logger.trace(f"FetchCache: hit for key '{key}'")
            if asyncio.isfuture(entry.result):
                return await asyncio.shield(entry.result)
            return entry.result

        logger.trace(f"FetchCache: miss for key '{key}'")
        task = asyncio.ensure_future(factory())
        entry = self.put(key, task, ttl)
        task.add_done_callback(lambda t: self._forget_if_failed(entry))
        return await asyncio.shield(task)

    def _forget_if_failed(self, entry: CacheEntry) -> None:
        if entry.has_failed():
            logger.debug(f"FetchCache: dropping failed entry for key '{entry.key}'")
            self._drop(entry)

    def _drop(self, entry: CacheEntry) -> None:
        if self._entries.get(entry.key) is entry:
            del self._entries[entry.key]


# Shared by every ContentClient in this process unless one is injected.
fetch_cache = FetchCache(
    capacity=settings.cache.capacity,
    default_ttl=settings.cache.default_ttl_seconds,
)
