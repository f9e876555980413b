"""Shared Redis client for payment receipts.

Receipts issued by /v1/payments/authorize have to be visible to whichever
API instance later handles the enroll call, so with REDIS_URL set they
live in Redis.  Without it ``redis_pool`` is None and the receipt cache
stays in process memory (fine for dev and tests, wrong for more than one
instance).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from urllib.parse import urlsplit

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from coursehub.core.config import SETTINGS

logger = logging.getLogger(__name__)


def _redacted(url: str) -> str:
    parts = urlsplit(url)
    if parts.password is None:
        return url
    return parts._replace(netloc=f"***@{parts.hostname}:{parts.port or 6379}").geturl()


redis_pool: aioredis.Redis | None = (  # type: ignore[type-arg]
    aioredis.from_url(SETTINGS.redis_url, decode_responses=True, max_connections=20)
    if SETTINGS.redis_url
    else None
)


@asynccontextmanager
async def lifespan_redis():
    if redis_pool is None:
        logger.info("No REDIS_URL configured; payment receipts are kept in memory")
        yield
        return

    target = _redacted(SETTINGS.redis_url or "")
    try:
        await redis_pool.ping()  # type: ignore[misc]
    except (RedisError, OSError):
        # /health reports redis as degraded; authorize and enroll fail
        # until it is reachable again.
        logger.exception("Redis unreachable on startup: %s", target)
    else:
        logger.info("Redis connected: %s", target)

    try:
        yield
    finally:
        await redis_pool.aclose()
        logger.info("Redis connection pool closed")
