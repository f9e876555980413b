from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from coursehub.main import app, status_for
from coursehub.services.errors import (
    AlreadyEnrolledError,
    AuthorizationError,
    CourseNotAvailableError,
    CourseNotFoundError,
    DomainError,
    EnrollmentDroppedError,
    LessonNotInCourseError,
    PaymentRequiredError,
    PaymentValidationError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (CourseNotFoundError("c"), 404),
        (LessonNotInCourseError("l", "c"), 404),
        (AlreadyEnrolledError("s", "c"), 409),
        (ValidationError("bad"), 422),
        (PaymentValidationError("bad", ["Invalid CVV"]), 422),
        (AuthorizationError("no"), 403),
        (CourseNotAvailableError("c", "draft"), 412),
        (EnrollmentDroppedError("e"), 412),
        (PaymentRequiredError("pay"), 402),
        (DomainError("odd"), 400),
    ],
)
def test_domain_errors_map_to_status_codes(error: DomainError, status_code: int) -> None:
    assert status_for(error) == status_code


def test_validation_error_keeps_message_as_only_error_by_default() -> None:
    assert ValidationError("score must be between 1 and 5").errors == (
        "score must be between 1 and 5",
    )


def test_docs_follow_environment(client: TestClient) -> None:
    expected = 200 if app.docs_url else 404
    assert client.get("/docs").status_code == expected


def test_unknown_route_is_404(client: TestClient) -> None:
    assert client.get("/v1/nope").status_code == 404
