"""Prometheus metrics middleware.

Tracks in-flight requests in ACTIVE_REQUESTS and, once a request
finishes, records REQUEST_COUNT and REQUEST_DURATION.

The endpoint label is the matched route template
(``/v1/enrollments/{enrollment_id}/progress``), never the concrete URL,
so course and enrollment IDs do not each become a time series.  Paths
that match no route are grouped under ``unmatched``.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from coursehub.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

UNMATCHED = "unmatched"
_SKIPPED_PATHS = frozenset({"/metrics"})


def _endpoint_label(request: Request) -> str:
    # The router stores the matched route in the scope during call_next.
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED


def _record(request: Request, status_code: int, elapsed: float) -> None:
    endpoint = _endpoint_label(request)
    REQUEST_COUNT.labels(
        method=request.method, endpoint=endpoint, status_code=str(status_code)
    ).inc()
    REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(elapsed)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIPPED_PATHS:
            return await call_next(request)

        start = time.monotonic()
        with ACTIVE_REQUESTS.track_inprogress():
            try:
                response = await call_next(request)
            except Exception:
                # Starlette turns an unhandled error into a 500.
                _record(request, 500, time.monotonic() - start)
                raise
        _record(request, response.status_code, time.monotonic() - start)
        return response
