"""Read-through cache for learner dashboards.

Dashboards are read far more often than they change (every page load
versus every lesson event), so GET /v1/dashboard/... checks the cache
first and fills it on a miss.  Two mechanisms keep entries fresh:

  1. Explicit invalidation: every committed reconciliation deletes the
     learner's dashboard entries before it returns.
  2. TTL: entries expire after DASHBOARD_CACHE_TTL seconds regardless.
     Expected progress moves with the calendar, so keys also carry the
     current UTC date and an untouched dashboard is rebuilt each day.
"""

from __future__ import annotations

import datetime
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from progress_engine.core.metrics import CACHE_OPERATIONS
from progress_engine.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on cache miss."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store a value with a TTL (time to live)."""
        ...

    async def delete(self, key: str) -> None:
        """Explicitly invalidate a cached entry."""
        ...

    async def delete_pattern(self, pattern: str) -> None:
        """Delete all keys matching a trailing-glob pattern (e.g. 'dashboard:learner-1:*')."""
        ...


class InMemoryCacheService:
    """In-memory cache for a single instance.  Entries expire lazily on read."""

    def __init__(self, timer: Callable[[], float] = time.monotonic) -> None:
        self._timer = timer
        self._store: dict[str, tuple[float, str]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._timer() >= expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (self._timer() + ttl_seconds, value)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def delete_pattern(self, pattern: str) -> None:
        prefix = pattern.rstrip("*")
        for k in [k for k in self._store if k.startswith(prefix)]:
            del self._store[k]


class RedisCacheService:
    """Redis-backed cache shared by all API instances."""

    _PREFIX = "cache:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def delete(self, key: str) -> None:
        await self._redis.delete(f"{self._PREFIX}{key}")

    async def delete_pattern(self, pattern: str) -> None:
        # SCAN, not KEYS: KEYS blocks the server for the whole keyspace walk
        cursor = 0
        while True:
            cursor, keys = await self._redis.scan(
                cursor, match=f"{self._PREFIX}{pattern}", count=100
            )
            if keys:
                await self._redis.delete(*keys)
            if cursor == 0:
                break


def dashboard_key(learner_id: str, day: datetime.date, scope: str = "learner") -> str:
    """Cache key for a learner dashboard or one of the learner's enrollment dashboards.

    The day is part of the key so a cached dashboard never outlives the
    calendar day its expected progress was computed for.
    """
    return f"dashboard:{learner_id}:{day.isoformat()}:{scope}"


async def invalidate_dashboards(cache: CacheService, learner_id: str) -> None:
    await cache.delete_pattern(f"dashboard:{learner_id}:*")
    CACHE_OPERATIONS.labels(operation="invalidate").inc()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
