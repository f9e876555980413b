"""Progress tracker: lesson completions and the status they drive.

Lesson completion sequence:
  Client -> POST /v1/enrollments/{id}/lessons/{lesson_id}/complete
  -> load enrollment (row-locked in PostgreSQL)
  -> reject dropped enrollments / lessons from another course
  -> already completed? return current progress unchanged
  -> append completion, recompute percentage, advance status
  -> single repository write
  -> 200 Progress

Status moves enrolled → in_progress on the first completion and
→ completed when every lesson of the course is done.  Progress and status
are computed together in Enrollment.with_lesson_completed and persisted
in one ``update`` call, so a failure leaves neither half applied.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from uuid import UUID

from coursehub.core.metrics import LESSON_COMPLETIONS_TOTAL
from coursehub.models.enrollment import Progress
from coursehub.models.principal import Principal
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.services.enrollment_service import ensure_can_act_on, utc_timestamp
from coursehub.services.errors import (
    CourseNotFoundError,
    EnrollmentDroppedError,
    EnrollmentNotFoundError,
    LessonNotInCourseError,
)

logger = logging.getLogger(__name__)


class ProgressService:
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

    async def mark_lesson_completed(
        self,
        enrollment_id: UUID,
        lesson_id: UUID,
        principal: Principal,
    ) -> Progress:
        enrollment = await self._enrollments.get_for_update(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(enrollment_id)
        ensure_can_act_on(enrollment, principal)
        if enrollment.status == "dropped":
            raise EnrollmentDroppedError(enrollment_id)

        course = await self._courses.get(enrollment.course_id)
        if course is None:
            raise CourseNotFoundError(enrollment.course_id)
        if course.lesson(lesson_id) is None:
            raise LessonNotInCourseError(lesson_id, course.id)

        updated = enrollment.with_lesson_completed(
            lesson_id, self._clock(), total_lessons=len(course.lessons)
        )
        if updated is enrollment:
            LESSON_COMPLETIONS_TOTAL.labels(result="duplicate").inc()
            logger.debug(
                "Lesson %s already completed in enrollment=%s", lesson_id, enrollment_id
            )
            return enrollment.progress

        await self._enrollments.update(updated)

        LESSON_COMPLETIONS_TOTAL.labels(result="recorded").inc()
        if updated.status == "completed":
            LESSON_COMPLETIONS_TOTAL.labels(result="course_completed").inc()
            logger.info(
                "Course completed enrollment=%s student=%s course=%s",
                updated.id,
                updated.student_id,
                updated.course_id,
                extra={"enrollment_id": str(updated.id)},
            )
        else:
            logger.info(
                "Lesson completed enrollment=%s lesson=%s progress=%.1f%%",
                updated.id,
                lesson_id,
                updated.progress.percentage,
                extra={"enrollment_id": str(updated.id)},
            )
        return updated.progress

    async def get_progress_percentage(
        self, enrollment_id: UUID, principal: Principal
    ) -> float:
        enrollment = await self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(enrollment_id)
        ensure_can_act_on(enrollment, principal)
        return enrollment.progress.percentage
