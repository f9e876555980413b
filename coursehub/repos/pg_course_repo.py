"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import CourseRow, LessonRow
from coursehub.models.course import Course, InstructorSummary, Lesson, Resource


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        lessons = await self._lessons_for([course_id])
        return row_to_course(row, lessons.get(course_id, []))

    async def list_all(self) -> list[Course]:
        rows = (await self._session.execute(select(CourseRow))).scalars().all()
        lessons = await self._lessons_for([r.id for r in rows])
        return [row_to_course(r, lessons.get(r.id, [])) for r in rows]

    async def list_by_instructor(self, instructor_id: UUID) -> list[Course]:
        stmt = select(CourseRow).where(CourseRow.instructor_id == instructor_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        lessons = await self._lessons_for([r.id for r in rows])
        return [row_to_course(r, lessons.get(r.id, [])) for r in rows]

    async def add(self, course: Course) -> None:
        self._session.add(_course_to_row(course))
        self._session.add_all(_lesson_to_row(lesson) for lesson in course.lessons)
        await self._session.flush()

    async def update(self, course: Course) -> None:
        values = {
            c: getattr(_course_to_row(course), c)
            for c in CourseRow.__table__.columns.keys()
            if c != "id"
        }
        result = await self._session.execute(
            update(CourseRow).where(CourseRow.id == course.id).values(**values)
        )
        if result.rowcount == 0:
            raise KeyError("course not found")

        keep = [lesson.id for lesson in course.lessons]
        stmt = delete(LessonRow).where(LessonRow.course_id == course.id)
        if keep:
            stmt = stmt.where(LessonRow.id.not_in(keep))
        await self._session.execute(stmt)
        for lesson in course.lessons:
            await self._session.merge(_lesson_to_row(lesson))
        await self._session.flush()

    async def delete(self, course_id: UUID) -> bool:
        await self._session.execute(
            delete(LessonRow).where(LessonRow.course_id == course_id)
        )
        result = await self._session.execute(
            delete(CourseRow).where(CourseRow.id == course_id)
        )
        return result.rowcount > 0

    async def _lessons_for(self, course_ids: list[UUID]) -> dict[UUID, list[LessonRow]]:
        if not course_ids:
            return {}
        stmt = (
            select(LessonRow)
            .where(LessonRow.course_id.in_(course_ids))
            .order_by(LessonRow.course_id, LessonRow.position)
        )
        grouped: dict[UUID, list[LessonRow]] = defaultdict(list)
        for row in (await self._session.execute(stmt)).scalars():
            grouped[row.course_id].append(row)
        return grouped


def row_to_course(row: CourseRow, lesson_rows: list[LessonRow]) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        description=row.description or "",
        category=row.category,
        instructor=InstructorSummary(id=row.instructor_id, name=row.instructor_name),
        difficulty=row.difficulty,
        status=row.status,
        price=row.price,
        currency=row.currency,
        duration_hours=row.duration_hours,
        lessons=tuple(
            sorted((_row_to_lesson(r) for r in lesson_rows), key=lambda ls: ls.order)
        ),
        tags=frozenset(row.tags or ()),
        prerequisites=tuple(row.prerequisites or ()),
        outcomes=tuple(row.outcomes or ()),
        published_at=row.published_at,
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        course_id=row.course_id,
        order=row.position,
        title=row.title,
        content=row.content or "",
        video_url=row.video_url,
        duration_minutes=row.duration_minutes,
        resources=tuple(
            Resource(title=r["title"], url=r["url"], type=r["type"])
            for r in (row.resources or [])
        ),
    )


def _course_to_row(course: Course) -> CourseRow:
    return CourseRow(
        id=course.id,
        title=course.title,
        description=course.description,
        category=course.category,
        difficulty=course.difficulty,
        status=course.status,
        price=course.price,
        currency=course.currency,
        duration_hours=course.duration_hours,
        instructor_id=course.instructor.id,
        instructor_name=course.instructor.name,
        tags=sorted(course.tags),
        prerequisites=list(course.prerequisites),
        outcomes=list(course.outcomes),
        published_at=course.published_at,
    )


def _lesson_to_row(lesson: Lesson) -> LessonRow:
    return LessonRow(
        id=lesson.id,
        course_id=lesson.course_id,
        position=lesson.order,
        title=lesson.title,
        content=lesson.content,
        video_url=lesson.video_url,
        duration_minutes=lesson.duration_minutes,
        resources=[
            {"title": r.title, "url": r.url, "type": r.type} for r in lesson.resources
        ],
    )
