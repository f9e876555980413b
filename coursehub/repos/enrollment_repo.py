from __future__ import annotations

from typing import Protocol
from uuid import UUID

from coursehub.models.enrollment import Enrollment
from coursehub.services.errors import AlreadyEnrolledError


class EnrollmentRepo(Protocol):
    async def get(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def get_for_update(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def find_active(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def update(self, enrollment: Enrollment) -> None: ...
    async def list_by_student(self, student_id: UUID) -> list[Enrollment]: ...
    async def list_by_course(self, course_id: UUID) -> list[Enrollment]: ...


class InMemoryEnrollmentRepo:
    """Enrollment store for dev and tests.

    ``add`` checks for an active (student, course) enrollment and inserts
    with no await in between, so on a single event loop two concurrent
    enroll calls cannot both pass the check.  PgEnrollmentRepo gets the
    same guarantee from a partial unique index.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, Enrollment] = {}

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def get_for_update(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def find_active(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        for e in self._by_id.values():
            if e.student_id == student_id and e.course_id == course_id and e.is_active:
                return e
        return None

    async def add(self, enrollment: Enrollment) -> None:
        if enrollment.id in self._by_id:
            raise ValueError("enrollment already exists")
        for e in self._by_id.values():
            if (
                e.student_id == enrollment.student_id
                and e.course_id == enrollment.course_id
                and e.is_active
            ):
                raise AlreadyEnrolledError(enrollment.student_id, enrollment.course_id)
        self._by_id[enrollment.id] = enrollment

    async def update(self, enrollment: Enrollment) -> None:
        if enrollment.id not in self._by_id:
            raise KeyError("enrollment not found")
        self._by_id[enrollment.id] = enrollment

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        found = [e for e in self._by_id.values() if e.student_id == student_id]
        # Newest insert first among enrollments from the same second.
        return sorted(reversed(found), key=lambda e: e.enrolled_at, reverse=True)

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        return [e for e in self._by_id.values() if e.course_id == course_id]
