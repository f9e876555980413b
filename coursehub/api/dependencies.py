from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.core.config import SETTINGS
from coursehub.core.logging import user_id_var
from coursehub.db.engine import get_optional_session
from coursehub.models.principal import Principal
from coursehub.repos.course_repo import CourseRepo, InMemoryCourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo, InMemoryEnrollmentRepo
from coursehub.repos.pg_course_repo import PgCourseRepo
from coursehub.repos.pg_enrollment_repo import PgEnrollmentRepo
from coursehub.services import token_service
from coursehub.services.cache import cache_service
from coursehub.services.catalog_service import CatalogService
from coursehub.services.course_admin_service import CourseAdminService
from coursehub.services.enrollment_service import EnrollmentService
from coursehub.services.payment_service import PaymentService
from coursehub.services.progress_service import ProgressService
from coursehub.services.receipt_ledger import ReceiptLedger
from coursehub.services.recommendation_gateway import (
    HttpRecommendationGateway,
    NullRecommendationGateway,
    RecommendationGateway,
)

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token", auto_error=False)

# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and return the caller as a Principal.

    Async so that user_id_var is set in the request task's own context
    (sync dependencies run in a worker thread with a copied context).
    """
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    try:
        user_id = UUID(claims["sub"])
    except ValueError:
        logger.warning("Token subject is not a UUID: %r", claims["sub"])
        raise _unauthorized("Invalid token") from None

    principal = Principal(
        user_id=user_id,
        roles=frozenset(claims.get("roles", [])),
        name=claims.get("name", ""),
    )
    user_id_var.set(str(principal.user_id))
    return principal


async def optional_user(
    raw_token: Annotated[str | None, Depends(optional_oauth2_scheme)],
) -> Principal | None:
    """Anonymous callers get None; a token that is present must be valid."""
    if raw_token is None:
        return None
    return await require_user(raw_token)


def require_any_role(roles: set[str]):
    """Dependency factory: demand at least one of the given roles.

    Usage: Depends(require_any_role({"admin", "instructor"}))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_any_role(roles):
            logger.warning(
                "Access denied: user=%s has none of roles=%s",
                principal.user_id,
                roles,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


# ---------------------------------------------------------------------------
# Repositories and services
# ---------------------------------------------------------------------------
# Without DATABASE_URL every request shares these in-memory repos; with it,
# each request gets PostgreSQL repos bound to its own session/transaction.

course_repo = InMemoryCourseRepo()
enrollment_repo = InMemoryEnrollmentRepo()
receipt_ledger = ReceiptLedger(cache_service, SETTINGS.receipt_ttl_seconds)
payment_service = PaymentService(receipt_ledger)

if SETTINGS.recommender_url:
    recommendation_gateway: RecommendationGateway = HttpRecommendationGateway(
        SETTINGS.recommender_url,
        timeout_seconds=SETTINGS.recommender_timeout_seconds,
    )
else:
    recommendation_gateway = NullRecommendationGateway()


@dataclass(frozen=True, slots=True)
class Repos:
    courses: CourseRepo
    enrollments: EnrollmentRepo


def get_repos(
    session: Annotated[AsyncSession | None, Depends(get_optional_session)],
) -> Repos:
    if session is None:
        return Repos(courses=course_repo, enrollments=enrollment_repo)
    return Repos(courses=PgCourseRepo(session), enrollments=PgEnrollmentRepo(session))


def get_catalog_service(
    repos: Annotated[Repos, Depends(get_repos)],
) -> CatalogService:
    return CatalogService(repos.courses, repos.enrollments)


def get_enrollment_service(
    repos: Annotated[Repos, Depends(get_repos)],
) -> EnrollmentService:
    return EnrollmentService(
        repos.courses,
        repos.enrollments,
        receipt_ttl_seconds=SETTINGS.receipt_ttl_seconds,
    )


def get_progress_service(
    repos: Annotated[Repos, Depends(get_repos)],
) -> ProgressService:
    return ProgressService(repos.courses, repos.enrollments)


def get_course_admin_service(
    repos: Annotated[Repos, Depends(get_repos)],
) -> CourseAdminService:
    return CourseAdminService(repos.courses, repos.enrollments)


def get_payment_service() -> PaymentService:
    return payment_service


def get_receipt_ledger() -> ReceiptLedger:
    return receipt_ledger


def get_recommendation_gateway() -> RecommendationGateway:
    return recommendation_gateway
