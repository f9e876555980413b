"""Course catalog: the read path over published courses, plus each
instructor's own course list in every status.

Enrollment counts and rating aggregates are computed from the enrollment
store on every read instead of being kept as counters on the course.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from coursehub.models.course import CatalogEntry, Course, RatingSummary
from coursehub.models.principal import Principal
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.services.errors import AuthorizationError, CourseNotFoundError


@dataclass(frozen=True, slots=True)
class CourseFilter:
    """All set fields must match (logical AND); unset fields match anything."""

    category: str | None = None
    difficulty: str | None = None
    search: str | None = None

    def matches(self, course: Course) -> bool:
        if self.category and course.category.lower() != self.category.lower():
            return False
        if self.difficulty and course.difficulty != self.difficulty.lower():
            return False
        if self.search:
            needle = self.search.strip().lower()
            haystack = f"{course.title}\n{course.description}".lower()
            if needle and needle not in haystack:
                return False
        return True


def can_view(course: Course, principal: Principal | None) -> bool:
    if course.is_published:
        return True
    if principal is None:
        return False
    return principal.is_admin() or course.instructor.id == principal.user_id


class CatalogService:
    def __init__(self, courses: CourseRepo, enrollments: EnrollmentRepo) -> None:
        self._courses = courses
        self._enrollments = enrollments

    async def list_courses(
        self, course_filter: CourseFilter | None = None
    ) -> list[CatalogEntry]:
        course_filter = course_filter or CourseFilter()
        found = [
            c
            for c in await self._courses.list_all()
            if c.is_published and course_filter.matches(c)
        ]
        found.sort(key=lambda c: (-(c.published_at or 0), c.title.lower()))
        return [await self._entry(c) for c in found]

    async def list_instructor_courses(
        self, principal: Principal, instructor_id: UUID
    ) -> list[CatalogEntry]:
        """Every course the instructor owns, drafts and archived ones included.

        Courses that have been published come first, most recently published
        first; never-published drafts follow by title.
        """
        if not principal.is_admin() and principal.user_id != instructor_id:
            raise AuthorizationError("instructors can only list their own courses")
        found = await self._courses.list_by_instructor(instructor_id)
        found.sort(key=lambda c: (-(c.published_at or 0), c.title.lower()))
        return [await self._entry(c) for c in found]

    async def get_course(
        self, course_id: UUID, principal: Principal | None = None
    ) -> CatalogEntry:
        course = await self._courses.get(course_id)
        if course is None or not can_view(course, principal):
            raise CourseNotFoundError(course_id)
        return await self._entry(course)

    async def _entry(self, course: Course) -> CatalogEntry:
        enrollments = await self._enrollments.list_by_course(course.id)
        scores = [e.rating.score for e in enrollments if e.rating is not None]
        rating = (
            RatingSummary(average=round(sum(scores) / len(scores), 2), count=len(scores))
            if scores
            else RatingSummary()
        )
        return CatalogEntry(
            course=course,
            enrollment_count=sum(1 for e in enrollments if e.is_active),
            rating=rating,
        )
