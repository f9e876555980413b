"""Enrollment manager: creates and reads student↔course enrollments.

Enrollment flow:
  Client -> POST /v1/courses/{course_id}/enroll
  -> course exists and is published           (404 / 412)
  -> no active enrollment for (student, course) (409)
  -> priced course: receipt matches price      (402)
  -> insert enrollment(status=enrolled)        (unique index backs the 409)
  -> 201 Enrolled

Check order matters: an unpublished course is reported as unavailable
even when the caller also has no receipt, and a duplicate is reported as
"already enrolled" before any payment complaint.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable
from dataclasses import replace
from uuid import UUID

from coursehub.core.metrics import ENROLLMENTS_TOTAL
from coursehub.models.course import Course
from coursehub.models.enrollment import Enrollment, EnrollmentRating
from coursehub.models.payment import PaymentReceipt
from coursehub.models.principal import Principal
from coursehub.repos.course_repo import CourseRepo
from coursehub.repos.enrollment_repo import EnrollmentRepo
from coursehub.services.errors import (
    AlreadyEnrolledError,
    AuthorizationError,
    CourseNotAvailableError,
    CourseNotFoundError,
    EnrollmentNotFoundError,
    PaymentRequiredError,
    PreconditionError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def utc_timestamp() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def ensure_can_act_on(enrollment: Enrollment, principal: Principal) -> None:
    """Students act on their own enrollments; admins on any."""
    if principal.is_admin() or enrollment.student_id == principal.user_id:
        return
    logger.warning(
        "Access denied: user=%s on enrollment=%s",
        principal.user_id,
        enrollment.id,
    )
    raise AuthorizationError("not your enrollment")


class EnrollmentService:
    def __init__(
        self,
        courses: CourseRepo,
        enrollments: EnrollmentRepo,
        *,
        receipt_ttl_seconds: int = 900,
        clock: Callable[[], int] = utc_timestamp,
    ) -> None:
        self._courses = courses
        self._enrollments = enrollments
        self._receipt_ttl = receipt_ttl_seconds
        self._clock = clock

    async def enroll(
        self,
        student_id: UUID,
        course_id: UUID,
        receipt: PaymentReceipt | None = None,
    ) -> Enrollment:
        course = await self._courses.get(course_id)
        if course is None:
            ENROLLMENTS_TOTAL.labels(result="not_found").inc()
            raise CourseNotFoundError(course_id)

        if not course.is_published:
            ENROLLMENTS_TOTAL.labels(result="not_available").inc()
            logger.warning(
                "Enrollment rejected: course=%s status=%s", course_id, course.status
            )
            raise CourseNotAvailableError(course_id, course.status)

        if await self._enrollments.find_active(student_id, course_id) is not None:
            ENROLLMENTS_TOTAL.labels(result="already_enrolled").inc()
            raise AlreadyEnrolledError(student_id, course_id)

        transaction_id = None
        if not course.is_free:
            paid = self._check_receipt(course, student_id, receipt)
            transaction_id = paid.transaction_id

        enrollment = Enrollment.new(
            student_id=student_id,
            course_id=course_id,
            enrolled_at=self._clock(),
            transaction_id=transaction_id,
        )
        try:
            await self._enrollments.add(enrollment)
        except AlreadyEnrolledError:
            # Lost a race with a concurrent enroll for the same pair.
            ENROLLMENTS_TOTAL.labels(result="already_enrolled").inc()
            raise

        ENROLLMENTS_TOTAL.labels(result="created").inc()
        logger.info(
            "Enrolled student=%s course=%s enrollment=%s paid=%s",
            student_id,
            course_id,
            enrollment.id,
            transaction_id is not None,
            extra={"course_id": str(course_id), "enrollment_id": str(enrollment.id)},
        )
        return enrollment

    def _check_receipt(
        self,
        course: Course,
        student_id: UUID,
        receipt: PaymentReceipt | None,
    ) -> PaymentReceipt:
        if receipt is None:
            raise self._payment_required(
                course, student_id, f"course costs {course.price} {course.currency}"
            )

        problem = None
        if receipt.amount != course.price:
            problem = (
                f"receipt amount {receipt.amount} does not match price {course.price}"
            )
        elif receipt.currency.upper() != course.currency.upper():
            problem = (
                f"receipt currency {receipt.currency} does not match {course.currency}"
            )
        elif receipt.payer_id != student_id:
            problem = "receipt was issued to a different payer"
        elif self._clock() - receipt.paid_at > self._receipt_ttl:
            problem = "receipt has expired"

        if problem is not None:
            raise self._payment_required(course, student_id, problem)
        return receipt

    def _payment_required(
        self, course: Course, student_id: UUID, problem: str
    ) -> PaymentRequiredError:
        ENROLLMENTS_TOTAL.labels(result="payment_required").inc()
        logger.warning(
            "Enrollment rejected: student=%s course=%s %s",
            student_id,
            course.id,
            problem,
        )
        return PaymentRequiredError(problem)

    async def list_enrollments_for_student(self, student_id: UUID) -> list[Enrollment]:
        return await self._enrollments.list_by_student(student_id)

    async def find_enrollment(
        self, student_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        return await self._enrollments.find_active(student_id, course_id)

    async def get_enrollment(
        self, enrollment_id: UUID, principal: Principal
    ) -> Enrollment:
        enrollment = await self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError(enrollment_id)
        ensure_can_act_on(enrollment, principal)
        return enrollment

    async def drop(self, enrollment_id: UUID, principal: Principal) -> Enrollment:
        enrollment = await self.get_enrollment(enrollment_id, principal)
        if enrollment.status == "dropped":
            return enrollment
        if enrollment.status == "completed":
            raise PreconditionError("a completed enrollment cannot be dropped")

        dropped = replace(enrollment, status="dropped")
        await self._enrollments.update(dropped)
        logger.info(
            "Dropped enrollment=%s student=%s course=%s",
            enrollment.id,
            enrollment.student_id,
            enrollment.course_id,
        )
        return dropped

    async def rate(
        self,
        enrollment_id: UUID,
        principal: Principal,
        *,
        score: int,
        review: str = "",
    ) -> Enrollment:
        enrollment = await self.get_enrollment(enrollment_id, principal)
        if enrollment.status != "completed":
            raise PreconditionError("only completed courses can be rated")
        if not 1 <= score <= 5:
            raise ValidationError("score must be between 1 and 5")

        rated = replace(
            enrollment,
            rating=EnrollmentRating(
                score=score, review=review.strip(), rated_at=self._clock()
            ),
        )
        await self._enrollments.update(rated)
        return rated

    async def can_access_lesson_content(
        self, principal: Principal, course: Course
    ) -> bool:
        if principal.is_admin() or course.instructor.id == principal.user_id:
            return True
        if not course.is_published:
            return False
        if course.is_free:
            return True
        return await self.find_enrollment(principal.user_id, course.id) is not None
