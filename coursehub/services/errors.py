"""Domain error taxonomy.

Services raise these; the API layer turns them into HTTP responses in a
single exception handler (see coursehub/main.py).  Each kind carries a
stable ``code`` so clients can tell "already enrolled" (informational)
from "payment required" (actionable) from "course unavailable" (blocking)
without parsing the message.

    DomainError
    ├── NotFoundError           404
    ├── ConflictError           409
    ├── ValidationError         422   carries every violated rule
    ├── AuthorizationError      403
    ├── PreconditionError       412
    └── PaymentRequiredError    402
"""

from __future__ import annotations

from collections.abc import Iterable


class DomainError(Exception):
    code = "domain_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# --- kinds ---


class NotFoundError(DomainError):
    code = "not_found"


class ConflictError(DomainError):
    code = "conflict"


class ValidationError(DomainError):
    code = "validation_failed"

    def __init__(self, message: str, errors: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.errors: tuple[str, ...] = tuple(errors) or (message,)


class AuthorizationError(DomainError):
    code = "forbidden"


class PreconditionError(DomainError):
    code = "precondition_failed"


class PaymentRequiredError(DomainError):
    code = "payment_required"


# --- specific errors ---


class CourseNotFoundError(NotFoundError):
    code = "course_not_found"

    def __init__(self, course_id: object) -> None:
        super().__init__(f"course {course_id} not found")


class EnrollmentNotFoundError(NotFoundError):
    code = "enrollment_not_found"

    def __init__(self, enrollment_id: object) -> None:
        super().__init__(f"enrollment {enrollment_id} not found")


class LessonNotInCourseError(NotFoundError):
    code = "lesson_not_in_course"

    def __init__(self, lesson_id: object, course_id: object) -> None:
        super().__init__(f"lesson {lesson_id} does not belong to course {course_id}")


class AlreadyEnrolledError(ConflictError):
    code = "already_enrolled"

    def __init__(self, student_id: object, course_id: object) -> None:
        super().__init__(f"student {student_id} is already enrolled in {course_id}")


class CourseNotAvailableError(PreconditionError):
    code = "course_not_available"

    def __init__(self, course_id: object, status: str) -> None:
        super().__init__(f"course {course_id} is {status}, not published")
        self.status = status


class EnrollmentDroppedError(PreconditionError):
    code = "enrollment_dropped"

    def __init__(self, enrollment_id: object) -> None:
        super().__init__(f"enrollment {enrollment_id} has been dropped")


class PaymentValidationError(ValidationError):
    code = "payment_invalid"
