from __future__ import annotations

import asyncio
import sys
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from coursehub.api import dependencies
from coursehub.main import app
from coursehub.models.course import Course, InstructorSummary, Lesson
from coursehub.services import token_service
from coursehub.services.cache import cache_service

# Ensure repo root is on sys.path so `import coursehub` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

STUDENT_ID = UUID("11111111-1111-1111-1111-111111111111")
INSTRUCTOR_ID = UUID("22222222-2222-2222-2222-222222222222")
ADMIN_ID = UUID("33333333-3333-3333-3333-333333333333")


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Clear the shared in-memory repos between tests."""
    dependencies.course_repo._by_id.clear()
    dependencies.enrollment_repo._by_id.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cached receipts between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_dependency_overrides():
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(
    user_id: UUID = STUDENT_ID,
    roles: list[str] | None = None,
    name: str = "",
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=str(user_id), roles=roles, name=name)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_token() -> str:
    return mint_token(STUDENT_ID, ["student"])


@pytest.fixture
def instructor_token() -> str:
    return mint_token(INSTRUCTOR_ID, ["instructor"], name="Ada Lovelace")


@pytest.fixture
def admin_token() -> str:
    return mint_token(ADMIN_ID, ["admin"])


# ---------------------------------------------------------------------------
# Course helpers
# ---------------------------------------------------------------------------


def make_course(
    *,
    title: str = "Intro to Data Engineering",
    description: str = "Pipelines, warehouses and orchestration.",
    category: str = "data",
    difficulty: str = "beginner",
    status: str = "published",
    price: Decimal | str = "0",
    currency: str = "USD",
    lessons: int = 4,
    instructor_id: UUID = INSTRUCTOR_ID,
    published_at: int | None = 1_700_000_000,
) -> Course:
    """Build a course with ``lessons`` ordered lessons (not persisted)."""
    course_id = uuid4()
    return Course(
        id=course_id,
        title=title,
        description=description,
        category=category,
        instructor=InstructorSummary(id=instructor_id, name="Ada Lovelace"),
        difficulty=difficulty,
        status=status,
        price=Decimal(price),
        currency=currency,
        duration_hours=2.5,
        lessons=tuple(
            Lesson.new(course_id=course_id, order=i, title=f"Lesson {i}")
            for i in range(1, lessons + 1)
        ),
        published_at=published_at if status == "published" else None,
    )


def seed_course(**kwargs) -> Course:
    """Build a course and store it in the shared in-memory repo."""
    course = make_course(**kwargs)
    asyncio.run(dependencies.course_repo.add(course))
    return course
