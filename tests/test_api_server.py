from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient
import pytest

from classroom_quiz.server.api_server import create_api_app

from conftest import T0, minutes


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


def _question(number: int, correct: int = 0) -> dict:
    return {
        "text": f"What is **{number}** squared?",
        "options": [{"text": f"${n}$", "is_correct": n == correct} for n in range(3)],
    }


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def client(manager, clock):
    return TestClient(create_api_app(manager, clock=clock))


@pytest.fixture
def published_quiz(client):
    response = client.post(
        "/quizzes",
        json={
            "title": "Squares",
            "class_name": "8-C",
            "subject": "Mathematics",
            "teacher_id": "teacher-1",
            "duration_minutes": 20,
            "passing_score_percent": 50,
            "deadline": (T0 + minutes(60)).isoformat(),
            "questions": [_question(1), _question(2)],
        },
    )
    assert response.status_code == 201
    quiz_id = response.json()["id"]
    assert client.post(f"/quizzes/{quiz_id}/publish").status_code == 200
    return quiz_id


def test_root_reports_name(client):
    body = client.get("/").json()
    assert body["name"]
    assert body["version"]


def test_create_quiz_returns_draft_with_rendered_questions(client):
    response = client.post(
        "/quizzes",
        json={
            "title": "Draft",
            "class_name": "8-C",
            "subject": "Maths",
            "teacher_id": "teacher-1",
            "questions": [_question(3)],
        },
    )
    body = response.json()
    assert response.status_code == 201
    assert body["publish_state"] == "draft"
    assert body["release"] == "immediate"
    assert "<strong>3</strong>" in body["questions"][0]["question_html"]
    assert body["questions"][0]["options"][0]["is_correct"] is True


def test_publish_invalid_quiz_lists_problems(client):
    quiz_id = client.post(
        "/quizzes",
        json={"title": "Too short", "class_name": "8-C", "subject": "Maths", "teacher_id": "t"},
    ).json()["id"]

    response = client.post(f"/quizzes/{quiz_id}/publish")

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["problems"] == ["A quiz needs between 2 and 10 questions (has 0)."]
    assert client.get(f"/quizzes/{quiz_id}").json()["publish_state"] == "draft"


def test_delete_question(client):
    quiz_id = client.post(
        "/quizzes",
        json={
            "title": "Edit",
            "class_name": "8-C",
            "subject": "Maths",
            "teacher_id": "t",
            "questions": [_question(1), _question(2)],
        },
    ).json()["id"]

    assert client.delete(f"/quizzes/{quiz_id}/questions/0").status_code == 204
    assert client.delete(f"/quizzes/{quiz_id}/questions/5").status_code == 404
    assert client.get(f"/quizzes/{quiz_id}").json()["total_questions"] == 1


def test_unknown_quiz_is_404(client):
    response = client.get("/quizzes/missing")
    assert response.status_code == 404
    assert response.json()["code"] == "quiz_not_found"


def test_student_session_flow(client, clock, published_quiz):
    listing = client.get("/students/stu-1/quizzes", params={"class_name": "8-C"}).json()
    assert [(q["id"], q["status"]) for q in listing] == [(published_quiz, "live")]

    started = client.post(f"/quizzes/{published_quiz}/sessions", json={"student_id": "stu-1"})
    assert started.status_code == 201
    attempt = started.json()
    assert attempt["seconds_remaining"] == 20 * 60

    question = client.get(f"/sessions/{attempt['id']}/question").json()["question"]
    assert all("is_correct" not in option for option in question["options"])

    clock.advance(minutes(1))
    answered = client.post(
        f"/sessions/{attempt['id']}/answers",
        json={"question_id": question["id"], "option_id": 0},
    ).json()
    assert answered["cursor"] == 1
    assert answered["answered_question_ids"] == [question["id"]]

    replay = client.post(
        f"/sessions/{attempt['id']}/answers",
        json={"question_id": question["id"], "option_id": 1},
    )
    assert replay.status_code == 409
    assert replay.json()["code"] == "out_of_sequence"

    assert client.get(f"/sessions/{attempt['id']}/result").status_code == 409

    result = client.post(f"/sessions/{attempt['id']}/submit").json()
    assert result["score"] == 1
    assert result["percent"] == 50.0
    assert result["passed"] is True
    assert result["termination_reason"] == "manual"
    assert client.post(f"/sessions/{attempt['id']}/submit").json() == result
    assert client.get(f"/sessions/{attempt['id']}/result").json() == result

    listing = client.get("/students/stu-1/quizzes").json()
    assert listing[0]["status"] == "completed"
    assert listing[0]["attempt"]["state"] == "submitted"


def test_duplicate_start_and_not_live(client, clock, published_quiz):
    client.post(f"/quizzes/{published_quiz}/sessions", json={"student_id": "stu-1"})
    duplicate = client.post(f"/quizzes/{published_quiz}/sessions", json={"student_id": "stu-1"})
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "duplicate_attempt"

    clock.advance(minutes(61))
    late = client.post(f"/quizzes/{published_quiz}/sessions", json={"student_id": "stu-2"})
    assert late.status_code == 409
    assert late.json()["code"] == "not_live"


def test_invalid_option_is_422(client, published_quiz):
    attempt = client.post(f"/quizzes/{published_quiz}/sessions", json={"student_id": "stu-1"}).json()
    question = client.get(f"/sessions/{attempt['id']}/question").json()["question"]
    response = client.post(
        f"/sessions/{attempt['id']}/answers",
        json={"question_id": question["id"], "option_id": 42},
    )
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_option"


def test_resume_and_timeout_through_session_read(client, clock, published_quiz):
    attempt = client.post(f"/quizzes/{published_quiz}/sessions", json={"student_id": "stu-1"}).json()

    clock.advance(minutes(5))
    resumed = client.post(f"/quizzes/{published_quiz}/sessions/resume", json={"student_id": "stu-1"}).json()
    assert resumed["id"] == attempt["id"]
    assert resumed["state"] == "in_progress"

    clock.advance(minutes(30))
    session = client.get(f"/sessions/{attempt['id']}").json()
    assert session["state"] == "submitted"
    assert session["termination_reason"] == "timeout"
    assert session["seconds_remaining"] == 0
    assert client.get(f"/sessions/{attempt['id']}/question").json() == {"question": None}


def test_teacher_views(client, clock, published_quiz):
    first = client.post(f"/quizzes/{published_quiz}/sessions", json={"student_id": "stu-1"}).json()
    client.post(f"/quizzes/{published_quiz}/sessions", json={"student_id": "stu-2"})
    clock.advance(minutes(2))
    client.post(f"/sessions/{first['id']}/submit")

    live = client.get(f"/quizzes/{published_quiz}/live").json()
    assert [(row["student_id"], row["state"]) for row in live["students"]] == [
        ("stu-1", "submitted"),
        ("stu-2", "in_progress"),
    ]

    ended = client.post(f"/quizzes/{published_quiz}/end").json()
    assert ended == {"quiz_id": published_quiz, "closed_attempts": 1}

    results = client.get(f"/quizzes/{published_quiz}/results").json()
    assert results["attempt_count"] == 2
    assert [row["student_id"] for row in results["rankings"]] == ["stu-1", "stu-2"]
    assert results["rankings"][1]["termination_reason"] == "forced"


def test_client_cannot_claim_a_timeout(client, clock, published_quiz):
    attempt = client.post(f"/quizzes/{published_quiz}/sessions", json={"student_id": "stu-1"}).json()
    clock.advance(minutes(1))

    response = client.post(f"/sessions/{attempt['id']}/submit", json={"reason": "timeout"})

    assert response.status_code == 200
    assert response.json()["termination_reason"] == "manual"
    session = client.get(f"/sessions/{attempt['id']}").json()
    assert session["termination_reason"] == "manual"
