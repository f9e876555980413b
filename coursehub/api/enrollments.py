"""Enrollment and progress endpoints.

Lesson completion sequence:
  Client -> POST /v1/enrollments/{enrollment_id}/lessons/{lesson_id}/complete
  -> ProgressService.mark_lesson_completed (row lock, idempotent)
  -> 200 Progress

All routes act on behalf of the bearer; the services reject enrollments
that belong to someone else unless the caller is an admin.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from coursehub.api.dependencies import (
    get_enrollment_service,
    get_progress_service,
    require_user,
)
from coursehub.models.enrollment import Enrollment, Progress
from coursehub.models.principal import Principal
from coursehub.services.enrollment_service import EnrollmentService
from coursehub.services.progress_service import ProgressService

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


class CompletedLessonOut(BaseModel):
    lesson_id: UUID
    completed_at: int


class ProgressOut(BaseModel):
    completed_lessons: list[CompletedLessonOut]
    percentage: float


class RatingOut(BaseModel):
    score: int
    review: str
    rated_at: int


class EnrollmentOut(BaseModel):
    id: UUID
    student_id: UUID
    course_id: UUID
    status: str
    enrolled_at: int
    progress: ProgressOut
    completed_at: int | None
    certificate_issued: bool
    rating: RatingOut | None
    transaction_id: str | None


class ProgressPercentageOut(BaseModel):
    enrollment_id: UUID
    percentage: float


class RatingIn(BaseModel):
    score: int
    review: str = ""


def progress_out(progress: Progress) -> ProgressOut:
    return ProgressOut(
        completed_lessons=[
            CompletedLessonOut(lesson_id=c.lesson_id, completed_at=c.completed_at)
            for c in progress.completed_lessons
        ],
        percentage=progress.percentage,
    )


def enrollment_out(enrollment: Enrollment) -> EnrollmentOut:
    rating = enrollment.rating
    return EnrollmentOut(
        id=enrollment.id,
        student_id=enrollment.student_id,
        course_id=enrollment.course_id,
        status=enrollment.status,
        enrolled_at=enrollment.enrolled_at,
        progress=progress_out(enrollment.progress),
        completed_at=enrollment.completed_at,
        certificate_issued=enrollment.certificate_issued,
        rating=(
            RatingOut(score=rating.score, review=rating.review, rated_at=rating.rated_at)
            if rating is not None
            else None
        ),
        transaction_id=enrollment.transaction_id,
    )


# "/me" is declared before "/{enrollment_id}" so it is not parsed as a UUID.
@router.get("/me", response_model=list[EnrollmentOut])
async def list_my_enrollments(
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
) -> list[EnrollmentOut]:
    enrollments = await service.list_enrollments_for_student(principal.user_id)
    return [enrollment_out(e) for e in enrollments]


@router.get("/{enrollment_id}", response_model=EnrollmentOut)
async def get_enrollment(
    enrollment_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
) -> EnrollmentOut:
    return enrollment_out(await service.get_enrollment(enrollment_id, principal))


@router.post("/{enrollment_id}/drop", response_model=EnrollmentOut)
async def drop_enrollment(
    enrollment_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
) -> EnrollmentOut:
    return enrollment_out(await service.drop(enrollment_id, principal))


@router.post("/{enrollment_id}/rating", response_model=EnrollmentOut)
async def rate_enrollment(
    enrollment_id: UUID,
    body: RatingIn,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[EnrollmentService, Depends(get_enrollment_service)],
) -> EnrollmentOut:
    rated = await service.rate(
        enrollment_id, principal, score=body.score, review=body.review
    )
    return enrollment_out(rated)


@router.post(
    "/{enrollment_id}/lessons/{lesson_id}/complete",
    response_model=ProgressOut,
)
async def complete_lesson(
    enrollment_id: UUID,
    lesson_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> ProgressOut:
    progress = await service.mark_lesson_completed(enrollment_id, lesson_id, principal)
    return progress_out(progress)


@router.get("/{enrollment_id}/progress", response_model=ProgressPercentageOut)
async def get_progress(
    enrollment_id: UUID,
    principal: Annotated[Principal, Depends(require_user)],
    service: Annotated[ProgressService, Depends(get_progress_service)],
) -> ProgressPercentageOut:
    percentage = await service.get_progress_percentage(enrollment_id, principal)
    return ProgressPercentageOut(enrollment_id=enrollment_id, percentage=percentage)
