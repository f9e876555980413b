from __future__ import annotations

from typing import Protocol
from uuid import UUID

from coursehub.models.course import Course


class CourseRepo(Protocol):
    async def get(self, course_id: UUID) -> Course | None: ...
    async def list_all(self) -> list[Course]: ...
    async def list_by_instructor(self, instructor_id: UUID) -> list[Course]: ...
    async def add(self, course: Course) -> None: ...
    async def update(self, course: Course) -> None: ...
    async def delete(self, course_id: UUID) -> bool: ...


class InMemoryCourseRepo:
    """Course store for dev and tests.

    Methods are async only to share the CourseRepo protocol with
    PgCourseRepo; nothing here awaits.
    """

    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}

    async def get(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def list_all(self) -> list[Course]:
        return list(self._by_id.values())

    async def list_by_instructor(self, instructor_id: UUID) -> list[Course]:
        return [c for c in self._by_id.values() if c.instructor.id == instructor_id]

    async def add(self, course: Course) -> None:
        if course.id in self._by_id:
            raise ValueError("course already exists")
        self._by_id[course.id] = course

    async def update(self, course: Course) -> None:
        if course.id not in self._by_id:
            raise KeyError("course not found")
        self._by_id[course.id] = course

    async def delete(self, course_id: UUID) -> bool:
        return self._by_id.pop(course_id, None) is not None
