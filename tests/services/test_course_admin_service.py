from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest

from coursehub.models.course import Resource
from coursehub.models.principal import Principal
from coursehub.repos.course_repo import InMemoryCourseRepo
from coursehub.repos.enrollment_repo import InMemoryEnrollmentRepo
from coursehub.services.course_admin_service import CourseAdminService
from coursehub.services.enrollment_service import EnrollmentService
from coursehub.services.errors import (
    AuthorizationError,
    CourseNotFoundError,
    LessonNotInCourseError,
    PreconditionError,
    ValidationError,
)

NOW = 1_800_000_000
INSTRUCTOR = Principal(user_id=uuid4(), roles=frozenset({"instructor"}), name="Ada")
OTHER_INSTRUCTOR = Principal(user_id=uuid4(), roles=frozenset({"instructor"}))
ADMIN = Principal(user_id=uuid4(), roles=frozenset({"admin"}))
STUDENT = Principal(user_id=uuid4(), roles=frozenset({"student"}))


@pytest.fixture
def admin() -> CourseAdminService:
    return CourseAdminService(
        InMemoryCourseRepo(), InMemoryEnrollmentRepo(), clock=lambda: NOW
    )


def _draft(admin: CourseAdminService, **kwargs):
    fields = {"title": "Intro to SQL", "description": "Queries", "category": "data"}
    fields.update(kwargs)
    return asyncio.run(admin.create_course(INSTRUCTOR, **fields))


# ---- create ----


def test_create_course_starts_as_draft(admin: CourseAdminService) -> None:
    course = _draft(admin, price=Decimal("20"), currency="usd", title="  Intro  ")
    assert course.status == "draft"
    assert course.title == "Intro"
    assert course.currency == "USD"
    assert course.instructor.id == INSTRUCTOR.user_id
    assert course.instructor.name == "Ada"
    assert course.lessons == ()


def test_students_cannot_create_courses(admin: CourseAdminService) -> None:
    with pytest.raises(AuthorizationError):
        asyncio.run(
            admin.create_course(STUDENT, title="x", description="", category="data")
        )


def test_create_reports_every_invalid_field(admin: CourseAdminService) -> None:
    with pytest.raises(ValidationError) as exc_info:
        _draft(admin, title=" ", difficulty="expert", price=Decimal("-1"))
    assert exc_info.value.errors == (
        "title must be non-empty",
        "difficulty must be one of beginner, intermediate, advanced",
        "price must be non-negative",
    )


# ---- update ----


def test_update_course_fields(admin: CourseAdminService) -> None:
    course = _draft(admin)
    updated = asyncio.run(
        admin.update_course(
            INSTRUCTOR, course.id, {"title": "Advanced SQL", "difficulty": "advanced"}
        )
    )
    assert updated.title == "Advanced SQL"
    assert updated.difficulty == "advanced"


def test_update_rejects_status_and_unknown_fields(admin: CourseAdminService) -> None:
    course = _draft(admin)
    with pytest.raises(ValidationError) as exc_info:
        asyncio.run(admin.update_course(INSTRUCTOR, course.id, {"status": "published"}))
    assert exc_info.value.errors == ("status cannot be updated",)


def test_only_owner_or_admin_can_update(admin: CourseAdminService) -> None:
    course = _draft(admin)
    with pytest.raises(AuthorizationError):
        asyncio.run(admin.update_course(OTHER_INSTRUCTOR, course.id, {"title": "Mine"}))
    asyncio.run(admin.update_course(ADMIN, course.id, {"title": "Reviewed"}))


def test_update_unknown_course(admin: CourseAdminService) -> None:
    with pytest.raises(CourseNotFoundError):
        asyncio.run(admin.update_course(INSTRUCTOR, uuid4(), {"title": "x"}))


# ---- lessons ----


def test_add_lessons_in_order(admin: CourseAdminService) -> None:
    course = _draft(admin)
    first = asyncio.run(admin.add_lesson(INSTRUCTOR, course.id, title="Select"))
    second = asyncio.run(
        admin.add_lesson(
            INSTRUCTOR,
            course.id,
            title="Joins",
            duration_minutes=15,
            resources=(Resource("Cheat sheet", "https://x/joins.pdf", "pdf"),),
        )
    )
    assert (first.order, second.order) == (1, 2)
    assert second.course_id == course.id
    assert second.resources[0].type == "pdf"


def test_add_lesson_validates_resources(admin: CourseAdminService) -> None:
    course = _draft(admin)
    with pytest.raises(ValidationError, match="invalid lesson") as exc_info:
        asyncio.run(
            admin.add_lesson(
                INSTRUCTOR,
                course.id,
                title="Joins",
                resources=(Resource("Song", "https://x", "mp3"),),
            )
        )
    assert exc_info.value.errors == ("resource type 'mp3' is not supported",)


def test_remove_lesson_before_enrollments(admin: CourseAdminService) -> None:
    course = _draft(admin)
    lesson = asyncio.run(admin.add_lesson(INSTRUCTOR, course.id, title="Select"))
    asyncio.run(admin.remove_lesson(INSTRUCTOR, course.id, lesson.id))
    with pytest.raises(LessonNotInCourseError):
        asyncio.run(admin.remove_lesson(INSTRUCTOR, course.id, lesson.id))


def test_remove_lesson_forbidden_once_enrolled() -> None:
    courses, enrollments = InMemoryCourseRepo(), InMemoryEnrollmentRepo()
    admin = CourseAdminService(courses, enrollments, clock=lambda: NOW)
    course = _draft(admin)
    lesson = asyncio.run(admin.add_lesson(INSTRUCTOR, course.id, title="Select"))
    asyncio.run(admin.publish(INSTRUCTOR, course.id))
    asyncio.run(EnrollmentService(courses, enrollments).enroll(STUDENT.user_id, course.id))

    with pytest.raises(PreconditionError):
        asyncio.run(admin.remove_lesson(INSTRUCTOR, course.id, lesson.id))
    assert asyncio.run(courses.get(course.id)).lesson(lesson.id) is not None


# ---- status transitions ----


def test_publish_requires_a_lesson(admin: CourseAdminService) -> None:
    course = _draft(admin)
    with pytest.raises(PreconditionError, match="at least one lesson"):
        asyncio.run(admin.publish(INSTRUCTOR, course.id))


def test_publish_unpublish_archive(admin: CourseAdminService) -> None:
    course = _draft(admin)
    asyncio.run(admin.add_lesson(INSTRUCTOR, course.id, title="Select"))

    published = asyncio.run(admin.publish(INSTRUCTOR, course.id))
    assert published.status == "published"
    assert published.published_at == NOW

    assert asyncio.run(admin.unpublish(INSTRUCTOR, course.id)).status == "draft"
    asyncio.run(admin.publish(INSTRUCTOR, course.id))
    assert asyncio.run(admin.archive(INSTRUCTOR, course.id)).status == "archived"


@pytest.mark.parametrize("action", ["unpublish", "archive"])
def test_invalid_transitions_from_draft(admin: CourseAdminService, action: str) -> None:
    course = _draft(admin)
    with pytest.raises(PreconditionError, match=f"cannot {action} a course that is draft"):
        asyncio.run(getattr(admin, action)(INSTRUCTOR, course.id))


def test_archived_course_cannot_be_republished(admin: CourseAdminService) -> None:
    course = _draft(admin)
    asyncio.run(admin.add_lesson(INSTRUCTOR, course.id, title="Select"))
    asyncio.run(admin.publish(INSTRUCTOR, course.id))
    asyncio.run(admin.archive(INSTRUCTOR, course.id))
    with pytest.raises(PreconditionError):
        asyncio.run(admin.publish(INSTRUCTOR, course.id))


# ---- delete ----


def test_delete_course_without_enrollments(admin: CourseAdminService) -> None:
    course = _draft(admin)
    asyncio.run(admin.add_lesson(INSTRUCTOR, course.id, title="Select"))
    asyncio.run(admin.delete_course(INSTRUCTOR, course.id))
    with pytest.raises(CourseNotFoundError):
        asyncio.run(admin.delete_course(INSTRUCTOR, course.id))


def test_admin_can_delete_any_course(admin: CourseAdminService) -> None:
    course = _draft(admin)
    asyncio.run(admin.delete_course(ADMIN, course.id))
    with pytest.raises(CourseNotFoundError):
        asyncio.run(admin.update_course(ADMIN, course.id, {"title": "Gone"}))


def test_only_owner_or_admin_can_delete(admin: CourseAdminService) -> None:
    course = _draft(admin)
    for who in (OTHER_INSTRUCTOR, STUDENT):
        with pytest.raises(AuthorizationError):
            asyncio.run(admin.delete_course(who, course.id))


def test_delete_forbidden_once_enrolled() -> None:
    courses, enrollments = InMemoryCourseRepo(), InMemoryEnrollmentRepo()
    admin = CourseAdminService(courses, enrollments, clock=lambda: NOW)
    course = _draft(admin)
    asyncio.run(admin.add_lesson(INSTRUCTOR, course.id, title="Select"))
    asyncio.run(admin.publish(INSTRUCTOR, course.id))
    enrollment = asyncio.run(
        EnrollmentService(courses, enrollments).enroll(STUDENT.user_id, course.id)
    )
    asyncio.run(EnrollmentService(courses, enrollments).drop(enrollment.id, STUDENT))

    with pytest.raises(PreconditionError, match="archive it instead"):
        asyncio.run(admin.delete_course(ADMIN, course.id))
    assert asyncio.run(courses.get(course.id)) is not None
