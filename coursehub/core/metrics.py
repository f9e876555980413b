"""Prometheus metric inventory for coursehub.

Every metric the service exposes is declared here; the module that owns
the behavior imports the metric and increments it at the point of action.

  HTTP metrics       populated by MetricsMiddleware for every request
  Domain counters    one per core operation, labelled by outcome, so a
                     dashboard can answer "how many enrollments were
                     rejected for missing payment in the last hour?"
                     without grepping logs
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Domain counters
# ---------------------------------------------------------------------------

ENROLLMENTS_TOTAL = Counter(
    "enrollments_total",
    "Enrollment attempts by outcome",
    # created|already_enrolled|not_available|payment_required|not_found
    ["result"],
)

LESSON_COMPLETIONS_TOTAL = Counter(
    "lesson_completions_total",
    "Lesson completion events by outcome",
    ["result"],  # recorded|duplicate|course_completed
)

PAYMENT_AUTHORIZATIONS_TOTAL = Counter(
    "payment_authorizations_total",
    "Mock payment authorizations by outcome",
    ["result"],  # authorized|invalid
)

RECOMMENDATION_REQUESTS_TOTAL = Counter(
    "recommendation_requests_total",
    "Calls to the external recommendation gateway by outcome",
    ["result"],  # ok|error|disabled
)
