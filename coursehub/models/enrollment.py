from __future__ import annotations

from dataclasses import dataclass, replace
from uuid import UUID, uuid4

ENROLLMENT_STATUSES = ("enrolled", "in_progress", "completed", "dropped")


@dataclass(frozen=True, slots=True)
class CompletedLesson:
    lesson_id: UUID
    completed_at: int


@dataclass(frozen=True, slots=True)
class Progress:
    """Completed lessons plus the percentage derived from them.

    Only ``empty()`` and ``record()`` produce instances in service code,
    and both derive ``percentage`` from the completed set, so the two can
    never disagree.
    """

    completed_lessons: tuple[CompletedLesson, ...] = ()
    percentage: float = 0.0

    @staticmethod
    def empty() -> Progress:
        return Progress()

    @staticmethod
    def compute_percentage(completed_count: int, total_lessons: int) -> float:
        if total_lessons <= 0:
            return 0.0
        return min(completed_count / total_lessons * 100, 100.0)

    @property
    def completed_count(self) -> int:
        return len(self.completed_lessons)

    def has_completed(self, lesson_id: UUID) -> bool:
        return any(c.lesson_id == lesson_id for c in self.completed_lessons)

    def record(self, lesson_id: UUID, at: int, total_lessons: int) -> Progress:
        """Return a new Progress with ``lesson_id`` completed. Idempotent."""
        if self.has_completed(lesson_id):
            return self
        completed = (*self.completed_lessons, CompletedLesson(lesson_id, at))
        return Progress(
            completed_lessons=completed,
            percentage=Progress.compute_percentage(len(completed), total_lessons),
        )


@dataclass(frozen=True, slots=True)
class EnrollmentRating:
    score: int
    review: str
    rated_at: int


@dataclass(frozen=True, slots=True)
class Enrollment:
    id: UUID
    student_id: UUID
    course_id: UUID
    enrolled_at: int
    status: str = "enrolled"  # enrolled|in_progress|completed|dropped
    progress: Progress = Progress()
    completed_at: int | None = None
    certificate_issued: bool = False
    rating: EnrollmentRating | None = None
    transaction_id: str | None = None

    @staticmethod
    def new(
        *,
        student_id: UUID,
        course_id: UUID,
        enrolled_at: int,
        transaction_id: str | None = None,
    ) -> Enrollment:
        return Enrollment(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            enrolled_at=enrolled_at,
            transaction_id=transaction_id,
        )

    @property
    def is_active(self) -> bool:
        """Counts toward the one-enrollment-per-(student, course) rule."""
        return self.status != "dropped"

    def with_lesson_completed(
        self, lesson_id: UUID, at: int, total_lessons: int
    ) -> Enrollment:
        """Apply a completion event: progress and status change together."""
        if self.status == "completed":
            return self
        progress =self.progress.record(lesson_id, at, total_lessons)
        if progress is self.progress:
            return self

        status = self.status
        completed_at = self.completed_at
        certificate_issued = self.certificate_issued
        if status == "enrolled":
            status = "in_progress"
        if total_lessons > 0 and progress.completed_count >= total_lessons:
            status = "completed"
            completed_at = at
            certificate_issued = True

        return replace(
            self,
            progress=progress,
            status=status,
            completed_at=completed_at,
            certificate_issued=certificate_issued,
        )
