"""Health and readiness endpoints.

  /health (liveness):
    Always 200 while the process can answer.  The body reports each
    backing service; status=degraded means "alive but impaired".

  /ready (readiness):
    503 when PostgreSQL is configured but unreachable, so the load
    balancer stops routing here until it recovers.  Redis only backs
    the receipt ledger and does not gate readiness.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from coursehub.db import engine as db_engine
from coursehub.db import redis as db_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_redis() -> str:
    if db_redis.redis_pool is None:
        return "not_configured"
    try:
        await db_redis.redis_pool.ping()  # type: ignore[misc]
    except Exception as e:
        logger.warning("Redis health check failed: %s", e)
        return "degraded"
    return "ok"


async def _check_database() -> str:
    if db_engine.engine is None:
        return "not_configured"
    try:
        async with db_engine.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        return "degraded"
    return "ok"


@router.get("/health")
async def health() -> dict:
    checks = {
        "redis": await _check_redis(),
        "database": await _check_database(),
    }
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if await _check_database() == "degraded":
        return Response(status_code=503)
    return Response(status_code=200)
