"""Tests for enrollment, progress and rating endpoints."""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from tests.conftest import auth, mint_token, seed_course


def _enroll(client: TestClient, token: str, course) -> dict:
    resp = client.post(f"/v1/courses/{course.id}/enroll", headers=auth(token))
    assert resp.status_code == 201, resp.text
    return resp.json()


def _complete(client: TestClient, token: str, enrollment_id: str, lesson_id) -> dict:
    resp = client.post(
        f"/v1/enrollments/{enrollment_id}/lessons/{lesson_id}/complete",
        headers=auth(token),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_requires_token(client: TestClient) -> None:
    assert client.get("/v1/enrollments/me").status_code == 401


def test_list_my_enrollments(client: TestClient, student_token: str) -> None:
    first, second = seed_course(title="A"), seed_course(title="B")
    _enroll(client, student_token, first)
    _enroll(client, student_token, second)

    resp = client.get("/v1/enrollments/me", headers=auth(student_token))
    assert resp.status_code == 200
    assert {e["course_id"] for e in resp.json()} == {str(first.id), str(second.id)}

    other = mint_token(uuid4(), ["student"])
    assert client.get("/v1/enrollments/me", headers=auth(other)).json() == []


def test_get_enrollment_owner_and_admin_only(
    client: TestClient, student_token: str, admin_token: str
) -> None:
    enrollment = _enroll(client, student_token, seed_course())
    url = f"/v1/enrollments/{enrollment['id']}"

    assert client.get(url, headers=auth(student_token)).status_code == 200
    assert client.get(url, headers=auth(admin_token)).status_code == 200
    stranger = mint_token(uuid4(), ["student"])
    resp = client.get(url, headers=auth(stranger))
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"


def test_get_unknown_enrollment_is_404(client: TestClient, student_token: str) -> None:
    resp = client.get(f"/v1/enrollments/{uuid4()}", headers=auth(student_token))
    assert resp.status_code == 404
    assert resp.json()["code"] == "enrollment_not_found"


def test_complete_every_lesson(client: TestClient, student_token: str) -> None:
    course = seed_course(lessons=4)
    enrollment = _enroll(client, student_token, course)

    percentages = [
        _complete(client, student_token, enrollment["id"], lesson.id)["percentage"]
        for lesson in course.lessons
    ]
    assert percentages == [25.0, 50.0, 75.0, 100.0]

    done = client.get(
        f"/v1/enrollments/{enrollment['id']}", headers=auth(student_token)
    ).json()
    assert done["status"] == "completed"
    assert done["completed_at"] is not None
    assert done["certificate_issued"] is True
    assert [c["lesson_id"] for c in done["progress"]["completed_lessons"]] == [
        str(ls.id) for ls in course.lessons
    ]


def test_completing_a_lesson_twice_is_idempotent(
    client: TestClient, student_token: str
) -> None:
    course = seed_course(lessons=4)
    enrollment = _enroll(client, student_token, course)
    lesson = course.lessons[0]

    first = _complete(client, student_token, enrollment["id"], lesson.id)
    second = _complete(client, student_token, enrollment["id"], lesson.id)
    assert first == second
    assert len(second["completed_lessons"]) == 1


def test_complete_lesson_from_another_course_is_404(
    client: TestClient, student_token: str
) -> None:
    enrollment = _enroll(client, student_token, seed_course())
    other = seed_course()
    resp = client.post(
        f"/v1/enrollments/{enrollment['id']}/lessons/{other.lessons[0].id}/complete",
        headers=auth(student_token),
    )
    assert resp.status_code == 404
    assert resp.json()["code"] == "lesson_not_in_course"


def test_progress_percentage(client: TestClient, student_token: str) -> None:
    course = seed_course(lessons=4)
    enrollment = _enroll(client, student_token, course)
    _complete(client, student_token, enrollment["id"], course.lessons[2].id)

    resp = client.get(
        f"/v1/enrollments/{enrollment['id']}/progress", headers=auth(student_token)
    )
    assert resp.status_code == 200
    assert resp.json() == {"enrollment_id": enrollment["id"], "percentage": 25.0}


def test_drop_then_complete_is_412(client: TestClient, student_token: str) -> None:
    course = seed_course()
    enrollment = _enroll(client, student_token, course)

    dropped = client.post(
        f"/v1/enrollments/{enrollment['id']}/drop", headers=auth(student_token)
    )
    assert dropped.status_code == 200
    assert dropped.json()["status"] == "dropped"

    resp = client.post(
        f"/v1/enrollments/{enrollment['id']}/lessons/{course.lessons[0].id}/complete",
        headers=auth(student_token),
    )
    assert resp.status_code == 412
    assert resp.json()["code"] == "enrollment_dropped"


def test_drop_frees_the_seat(client: TestClient, student_token: str) -> None:
    course = seed_course()
    enrollment = _enroll(client, student_token, course)
    client.post(f"/v1/enrollments/{enrollment['id']}/drop", headers=auth(student_token))

    again = _enroll(client, student_token, course)
    assert again["id"] != enrollment["id"]


def test_rate_completed_course(client: TestClient, student_token: str) -> None:
    course = seed_course(lessons=1)
    enrollment = _enroll(client, student_token, course)
    _complete(client, student_token, enrollment["id"], course.lessons[0].id)

    resp = client.post(
        f"/v1/enrollments/{enrollment['id']}/rating",
        json={"score": 4, "review": "  Clear and practical  "},
        headers=auth(student_token),
    )
    assert resp.status_code == 200
    assert resp.json()["rating"]["score"] == 4
    assert resp.json()["rating"]["review"] == "Clear and practical"

    summary = client.get(f"/v1/courses/{course.id}").json()["rating"]
    assert summary == {"average": 4.0, "count": 1}


def test_rate_unfinished_course_is_412(client: TestClient, student_token: str) -> None:
    enrollment = _enroll(client, student_token, seed_course())
    resp = client.post(
        f"/v1/enrollments/{enrollment['id']}/rating",
        json={"score": 5},
        headers=auth(student_token),
    )
    assert resp.status_code == 412


@pytest.mark.parametrize("score", [0, 6])
def test_rate_out_of_range_is_422(
    client: TestClient, student_token: str, score: int
) -> None:
    course = seed_course(lessons=1)
    enrollment = _enroll(client, student_token, course)
    _complete(client, student_token, enrollment["id"], course.lessons[0].id)

    resp = client.post(
        f"/v1/enrollments/{enrollment['id']}/rating",
        json={"score": score},
        headers=auth(student_token),
    )
    assert resp.status_code == 422
    assert resp.json()["errors"] == ["score must be between 1 and 5"]
