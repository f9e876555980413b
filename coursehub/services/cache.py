"""Key/value store with TTL for short-lived state.

Payment receipts live here between "authorize" and "enroll": they are
meant to be spent within minutes, must be visible to every API instance
(the student may hit a different replica for the two calls), and should
disappear on their own if never used.  That is Redis with SETEX.

Two implementations share the CacheService protocol:

  RedisCacheService     used when REDIS_URL is configured
  InMemoryCacheService  dev and tests; enforces TTL with a monotonic clock
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from coursehub.db.redis import redis_pool


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a value.  Returns None when missing or expired."""
        ...

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def pop(self, key: str) -> str | None:
        """Remove a key and return its value in one step.  Of several
        concurrent callers at most one receives the value."""
        ...


class InMemoryCacheService:
    """Process-local store.  The autouse fixture in conftest.py clears it."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[str, tuple[str, float]] = {}
        self._clock = clock

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._store[key] = (value, self._clock() + ttl_seconds)

    async def pop(self, key: str) -> str | None:
        entry = self._store.pop(key, None)
        if entry is None or self._clock() >= entry[1]:
            return None
        return entry[0]


class RedisCacheService:
    """Redis-backed store, shared across all API instances."""

    # Prefix keeps these keys apart from anything else in the same Redis DB.
    _PREFIX = "coursehub:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        return await self._redis.get(f"{self._PREFIX}{key}")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._redis.setex(f"{self._PREFIX}{key}", ttl_seconds, value)

    async def pop(self, key: str) -> str | None:
        # GETDEL (Redis >= 6.2) is atomic on the server; exactly one caller
        # gets the value for a given key, which makes a receipt single-use.
        return await self._redis.getdel(f"{self._PREFIX}{key}")


if redis_pool is not None:
    cache_service: CacheService = RedisCacheService(redis_pool)
else:
    cache_service = InMemoryCacheService()
