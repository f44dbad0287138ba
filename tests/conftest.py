from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from classroom_quiz.core.models import Option, QuizDefinition, ReleasePolicy
from classroom_quiz.core.quiz_manager import QuizManager

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def minutes(value: float) -> timedelta:
    return timedelta(minutes=value)


def make_options(count: int = 4, correct: int = 0) -> list[Option]:
    return [Option(id=i, text=f"Option {i}", is_correct=i == correct) for i in range(count)]


def build_quiz(
    manager: QuizManager,
    *,
    questions: int = 3,
    duration: int = 30,
    passing: float = 50.0,
    release_at: datetime | None = None,
    deadline: datetime | None = None,
    class_name: str = "9-A",
    publish: bool = True,
) -> QuizDefinition:
    """Create a quiz whose correct answer is always option 0."""
    quiz = manager.create_quiz(
        "Weekly Algebra",
        class_name,
        "Mathematics",
        "teacher-1",
        duration_minutes=duration,
        passing_score_percent=passing,
        release_policy=ReleasePolicy.scheduled_at(release_at) if release_at else ReleasePolicy.immediate(),
        deadline=deadline,
        created_at=T0 - minutes(60),
    )
    for number in range(questions):
        manager.add_question(quiz.id, f"What is {number} + {number}?", make_options())
    if publish:
        return manager.publish_quiz(quiz.id, T0 - minutes(30))
    return manager.get_quiz(quiz.id)


def answer_all(manager: QuizManager, attempt_id: str, quiz: QuizDefinition, choices: list[int], now: datetime):
    attempt = None
    for question, option_id in zip(quiz.questions, choices):
        attempt = manager.submit_answer(attempt_id, question.id, option_id, now)
    return attempt


@pytest.fixture
def manager() -> QuizManager:
    return QuizManager()
