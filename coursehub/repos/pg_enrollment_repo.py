"""PostgreSQL implementation of EnrollmentRepo.

Uniqueness of active enrollments comes from the partial unique index
``uq_enrollments_active_student_course``; ``add`` runs the INSERT inside a
SAVEPOINT so a violation can be turned into AlreadyEnrolledError without
poisoning the request's transaction.

``get_for_update`` takes a row lock, which serializes concurrent lesson
completions on the same enrollment until the request commits.
"""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from coursehub.db.tables import EnrollmentRow, LessonCompletionRow
from coursehub.models.enrollment import (
    CompletedLesson,
    Enrollment,
    EnrollmentRating,
    Progress,
)
from coursehub.services.errors import AlreadyEnrolledError

_ACTIVE_INDEX = "uq_enrollments_active_student_course"
# Columns update() leaves alone; seq is assigned by the database on INSERT.
_GENERATED_COLUMNS = frozenset({"id", "seq"})


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        row = await self._session.get(EnrollmentRow, enrollment_id)
        if row is None:
            return None
        return (await self._hydrate([row]))[0]

    async def get_for_update(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment_id)
            .with_for_update()
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return (await self._hydrate([row]))[0]

    async def find_active(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.student_id == student_id,
            EnrollmentRow.course_id == course_id,
            EnrollmentRow.status != "dropped",
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return (await self._hydrate([row]))[0]

    async def add(self, enrollment: Enrollment) -> None:
        try:
            async with self._session.begin_nested():
                self._session.add(_enrollment_to_row(enrollment))
                self._session.add_all(
                    _completion_rows(enrollment.id, enrollment.progress)
                )
        except IntegrityError as exc:
            if _ACTIVE_INDEX in str(exc.orig):
                raise AlreadyEnrolledError(
                    enrollment.student_id, enrollment.course_id
                ) from None
            raise

    async def update(self, enrollment: Enrollment) -> None:
        row = _enrollment_to_row(enrollment)
        values = {
            c: getattr(row, c)
            for c in EnrollmentRow.__table__.columns.keys()
            if c not in _GENERATED_COLUMNS
        }
        result = await self._session.execute(
            update(EnrollmentRow)
            .where(EnrollmentRow.id == enrollment.id)
            .values(**values)
        )
        if result.rowcount == 0:
            raise KeyError("enrollment not found")

        existing = set(
            (
                await self._session.execute(
                    select(LessonCompletionRow.lesson_id).where(
                        LessonCompletionRow.enrollment_id == enrollment.id
                    )
                )
            ).scalars()
        )
        self._session.add_all(
            r
            for r in _completion_rows(enrollment.id, enrollment.progress)
            if r.lesson_id not in existing
        )
        await self._session.flush()

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        stmt = (
            select(EnrollmentRow)
            .where(EnrollmentRow.student_id == student_id)
            .order_by(EnrollmentRow.enrolled_at.desc(), EnrollmentRow.seq.desc())
        )
        rows = list((await self._session.execute(stmt)).scalars())
        return await self._hydrate(rows)

    async def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
        rows = list((await self._session.execute(stmt)).scalars())
        return await self._hydrate(rows)

    async def _hydrate(self, rows: list[EnrollmentRow]) -> list[Enrollment]:
        if not rows:
            return []
        stmt = (
            select(LessonCompletionRow)
            .where(LessonCompletionRow.enrollment_id.in_([r.id for r in rows]))
            .order_by(LessonCompletionRow.completed_at)
        )
        completions: dict[UUID, list[LessonCompletionRow]] = defaultdict(list)
        for c in (await self._session.execute(stmt)).scalars():
            completions[c.enrollment_id].append(c)
        return [row_to_enrollment(r, completions.get(r.id, [])) for r in rows]


def row_to_enrollment(
    row: EnrollmentRow, completion_rows: list[LessonCompletionRow]
) -> Enrollment:
    rating = None
    if row.rating_score is not None:
        rating = EnrollmentRating(
            score=row.rating_score,
            review=row.rating_review or "",
            rated_at=row.rated_at or 0,
        )
    return Enrollment(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
        status=row.status,
        progress=Progress(
            completed_lessons=tuple(
                CompletedLesson(lesson_id=c.lesson_id, completed_at=c.completed_at)
                for c in completion_rows
            ),
            percentage=row.percentage,
        ),
        completed_at=row.completed_at,
        certificate_issued=row.certificate_issued,
        rating=rating,
        transaction_id=row.transaction_id,
    )


def _enrollment_to_row(enrollment: Enrollment) -> EnrollmentRow:
    rating = enrollment.rating
    return EnrollmentRow(
        id=enrollment.id,
        student_id=enrollment.student_id,
        course_id=enrollment.course_id,
        enrolled_at=enrollment.enrolled_at,
        status=enrollment.status,
        percentage=enrollment.progress.percentage,
        completed_at=enrollment.completed_at,
        certificate_issued=enrollment.certificate_issued,
        rating_score=rating.score if rating else None,
        rating_review=rating.review if rating else None,
        rated_at=rating.rated_at if rating else None,
        transaction_id=enrollment.transaction_id,
    )


def _completion_rows(
    enrollment_id: UUID, progress: Progress
) -> list[LessonCompletionRow]:
    return [
        LessonCompletionRow(
            enrollment_id=enrollment_id,
            lesson_id=c.lesson_id,
            completed_at=c.completed_at,
        )
        for c in progress.completed_lessons
    ]
