from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from coursehub.api.courses import router as courses_router
from coursehub.api.enrollments import router as enrollments_router
from coursehub.api.health import router as health_router
from coursehub.api.metrics_endpoint import router as metrics_router
from coursehub.api.payments import router as payments_router
from coursehub.api.recommendations import router as recommendations_router
from coursehub.core.config import SETTINGS
from coursehub.core.logging import setup_logging
from coursehub.db.engine import lifespan_db
from coursehub.db.redis import lifespan_redis
from coursehub.middleware.metrics import MetricsMiddleware
from coursehub.middleware.request_context import RequestContextMiddleware
from coursehub.services.errors import (
    AuthorizationError,
    ConflictError,
    DomainError,
    NotFoundError,
    PaymentRequiredError,
    PreconditionError,
    ValidationError,
)
from coursehub.services.recommendation_gateway import RecommendationUnavailableError

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)

# Specific errors map through the kind they subclass.
_STATUS_BY_KIND: tuple[tuple[type[DomainError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ValidationError, 422),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (PreconditionError, status.HTTP_412_PRECONDITION_FAILED),
    (PaymentRequiredError, status.HTTP_402_PAYMENT_REQUIRED),
)


def status_for(exc: DomainError) -> int:
    for kind, code in _STATUS_BY_KIND:
        if isinstance(exc, kind):
            return code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Teardown runs in reverse order (Redis closes before the DB engine).
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="coursehub",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)


@app.exception_handler(DomainError)
async def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    code = status_for(exc)
    body: dict = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, ValidationError):
        body["errors"] = list(exc.errors)
    return JSONResponse(status_code=code, content=body)


@app.exception_handler(RecommendationUnavailableError)
async def recommendation_unavailable_handler(
    _request: Request, exc: RecommendationUnavailableError
) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "detail": "recommendation service unavailable",
            "code": "recommendations_unavailable",
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext → Metrics → CORS → route handler,
# so every request has a request ID before metrics are recorded.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(courses_router)
app.include_router(enrollments_router)
app.include_router(payments_router)
app.include_router(recommendations_router)

logger.info(
    "coursehub started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
