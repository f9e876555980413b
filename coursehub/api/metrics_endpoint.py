"""Prometheus scrape endpoint.

Serves the HTTP metrics recorded by MetricsMiddleware together with the
domain counters (enrollments, lesson completions, payment authorizations,
recommendation requests) in text exposition format.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
