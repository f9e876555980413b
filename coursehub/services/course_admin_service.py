"""Instructor/admin write path for courses.

Each mutation is one operation with one failure mode.  Allowed status
transitions:

    draft ──publish──▶ published ──archive──▶ archived
      ▲                    │
      └─────unpublish──────┘

Lessons cannot be removed, and the course cannot be deleted, once any
enrollment exists for it, because enrollments and completion records
reference them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from decimal import Decimal
from typing import Any
from uuid import UUID

from coursehub.models.course import (
    COURSE_STATUSES,
    DIFFICULTY_LEVELS,
    RESOURCE_TYPES,
    Course,
    InstructorSummary,
    Lesson,
    Resource,
)
from coursehub.models.principal import Principal
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.services.enrollment_service import utc_timestamp
from coursehub.services.errors import (
    AuthorizationError,
    CourseNotFoundError,
    LessonNotInCourseError,
    PreconditionError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_TRANSITIONS = {
    "publish": ("draft", "published"),
    "unpublish": ("published", "draft"),
    "archive": ("published", "archived"),
}

# Fields update_course may change.  Status has its own operations.
_EDITABLE_FIELDS = frozenset(
    {
        "title",
        "description",
        "category",
        "difficulty",
        "price",
        "currency",
        "duration_hours",
        "tags",
        "prerequisites",
        "outcomes",
    }
)


def _validate_course_fields(course: Course) -> None:
    errors: list[str] = []
    if not course.title.strip():
        errors.append("title must be non-empty")
    if not course.category.strip():
        errors.append("category must be non-empty")
    if course.difficulty not in DIFFICULTY_LEVELS:
        errors.append(f"difficulty must be one of {', '.join(DIFFICULTY_LEVELS)}")
    if course.price < 0:
        errors.append("price must be non-negative")
    if course.duration_hours < 0:
        errors.append("duration must be non-negative")
    if course.status not in COURSE_STATUSES:
        errors.append(f"status must be one of {', '.join(COURSE_STATUSES)}")
    if errors:
        raise ValidationError("invalid course", errors)


class CourseAdminService:
    def __init__(
        self,
        courses: CourseRepo,
        enrollments: EnrollmentRepo,
        *,
        clock: Callable[[], int] = utc_timestamp,
    ) -> None:
        self._courses = courses
        self._enrollments = enrollments
        self._clock = clock

    async def create_course(
        self,
        principal: Principal,
        *,
        title: str,
        description: str,
        category: str,
        difficulty: str = "beginner",
        price: Decimal = Decimal("0"),
        currency: str = "USD",
        duration_hours: float = 0,
        tags: frozenset[str] = frozenset(),
        prerequisites: tuple[str, ...] = (),
        outcomes: tuple[str, ...] = (),
    ) -> Course:
        if not (principal.is_instructor() or principal.is_admin()):
            raise AuthorizationError("only instructors can create courses")

        course = Course.new(
            title=title.strip(),
            description=description,
            category=category.strip(),
            instructor=InstructorSummary(id=principal.user_id, name=principal.name),
            difficulty=difficulty,
            price=price,
            currency=currency.upper(),
            duration_hours=duration_hours,
            tags=tags,
            prerequisites=prerequisites,
            outcomes=outcomes,
        )
        _validate_course_fields(course)
        await self._courses.add(course)
        logger.info(
            "Course created id=%s instructor=%s", course.id, principal.user_id
        )
        return course

    async def update_course(
        self, principal: Principal, course_id: UUID, changes: dict[str, Any]
    ) -> Course:
        course = await self._owned_course(principal, course_id)
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError(
                "invalid course update",
                [f"{name} cannot be updated" for name in sorted(unknown)],
            )
        updated = replace(course, **changes)
        _validate_course_fields(updated)
        await self._courses.update(updated)
        return updated

    async def add_lesson(
        self,
        principal: Principal,
        course_id: UUID,
        *,
        title: str,
        content: str = "",
        video_url: str | None = None,
        duration_minutes: int = 0,
        resources: tuple[Resource, ...] = (),
    ) -> Lesson:
        course = await self._owned_course(principal, course_id)

        errors = []
        if not title.strip():
            errors.append("lesson title must be non-empty")
        if duration_minutes < 0:
            errors.append("lesson duration must be non-negative")
        errors.extend(
            f"resource type {r.type!r} is not supported"
            for r in resources
            if r.type not in RESOURCE_TYPES
        )
        if errors:
            raise ValidationError("invalid lesson", errors)

        next_order = max((ls.order for ls in course.lessons), default=0) + 1
        lesson = Lesson.new(
            course_id=course.id,
            order=next_order,
            title=title.strip(),
            content=content,
            video_url=video_url,
            duration_minutes=duration_minutes,
            resources=resources,
        )
        await self._courses.update(replace(course, lessons=(*course.lessons, lesson)))
        return lesson

    async def remove_lesson(
        self, principal: Principal, course_id: UUID, lesson_id: UUID
    ) -> None:
        course = await self._owned_course(principal, course_id)
        if course.lesson(lesson_id) is None:
            raise LessonNotInCourseError(lesson_id, course_id)
        if await self._enrollments.list_by_course(course_id):
            raise PreconditionError(
                "lessons cannot be removed from a course that has enrollments"
            )
        remaining = tuple(ls for ls in course.lessons if ls.id != lesson_id)
        await self._courses.update(replace(course, lessons=remaining))

    async def publish(self, principal: Principal, course_id: UUID) -> Course:
        course = await self._owned_course(principal, course_id)
        if course.status == "draft" and not course.lessons:
            raise PreconditionError("a course needs at least one lesson to publish")
        return await self._transition(course, "publish")

    async def unpublish(self, principal: Principal, course_id: UUID) -> Course:
        course = await self._owned_course(principal, course_id)
        return await self._transition(course, "unpublish")

    async def archive(self, principal: Principal, course_id: UUID) -> Course:
        course = await self._owned_course(principal, course_id)
        return await self._transition(course, "archive")

    async def delete_course(self, principal: Principal, course_id: UUID) -> None:
        course = await self._owned_course(principal, course_id)
        if await self._enrollments.list_by_course(course_id):
            raise PreconditionError(
                "a course with enrollments cannot be deleted; archive it instead"
            )
        await self._courses.delete(course.id)
        logger.info("Course %s deleted by user=%s", course.id, principal.user_id)

    async def _transition(self, course: Course, action: str) -> Course:
        source, target = _TRANSITIONS[action]
        if course.status != source:
            raise PreconditionError(
                f"cannot {action} a course that is {course.status}"
            )
        updated = replace(course, status=target)
        if target == "published":
            updated = replace(updated, published_at=self._clock())
        await self._courses.update(updated)
        logger.info("Course %s %s → %s", course.id, source, target)
        return updated

    async def _owned_course(self, principal: Principal, course_id: UUID) -> Course:
        course = await self._courses.get(course_id)
        if course is None:
            raise CourseNotFoundError(course_id)
        if not principal.is_admin() and course.instructor.id != principal.user_id:
            logger.warning(
                "Access denied: user=%s does not own course=%s",
                principal.user_id,
                course_id,
            )
            raise AuthorizationError("only the course owner or an admin can do this")
        return course
