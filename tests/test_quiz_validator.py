from __future__ import annotations

import pytest

from classroom_quiz.core.errors import QuizAlreadyPublished, QuizNotFound, ValidationError
from classroom_quiz.core.models import Option, PublishState

from conftest import T0, build_quiz, make_options


def test_publish_valid_quiz(manager):
    quiz = build_quiz(manager, publish=False)
    assert manager.check_publishable(quiz.id) == []

    published = manager.publish_quiz(quiz.id, T0)
    assert published.publish_state is PublishState.PUBLISHED
    assert published.published_at == T0


def test_two_correct_options_rejected_and_quiz_stays_draft(manager):
    quiz = build_quiz(manager, questions=1, publish=False)
    manager.add_question(
        quiz.id,
        "Which are even?",
        [Option(id=0, text="2", is_correct=True), Option(id=1, text="4", is_correct=True)],
    )
    before = manager.get_quiz(quiz.id)

    with pytest.raises(ValidationError) as exc_info:
        manager.publish_quiz(quiz.id, T0)

    assert any("2 options marked correct" in problem for problem in exc_info.value.problems)
    after = manager.get_quiz(quiz.id)
    assert after.publish_state is PublishState.DRAFT
    assert after == before


@pytest.mark.parametrize("count", [0, 1, 11])
def test_question_count_must_be_between_two_and_ten(manager, count):
    quiz = build_quiz(manager, questions=count, publish=False)
    with pytest.raises(ValidationError):
        manager.publish_quiz(quiz.id, T0)


@pytest.mark.parametrize("count", [2, 10])
def test_question_count_bounds_are_inclusive(manager, count):
    quiz = build_quiz(manager, questions=count, publish=False)
    assert manager.publish_quiz(quiz.id, T0).is_published


def test_question_with_single_option_rejected(manager):
    quiz = build_quiz(manager, questions=2, publish=False)
    manager.add_question(quiz.id, "Lonely?", [Option(id=0, text="Yes", is_correct=True)])
    problems = manager.check_publishable(quiz.id)
    assert problems == ["Question 3 needs at least 2 options."]


def test_question_without_correct_option_rejected(manager):
    quiz = build_quiz(manager, questions=2, publish=False)
    manager.add_question(quiz.id, "Pick one", [Option(id=0, text="a"), Option(id=1, text="b")])
    assert manager.check_publishable(quiz.id) == ["Question 3 has no correct option."]


@pytest.mark.parametrize(
    "settings, expected",
    [
        ({"title": "   "}, "Quiz title is required."),
        ({"duration_minutes": 0}, "Duration must be a positive number of minutes."),
        ({"duration_minutes": -5}, "Duration must be a positive number of minutes."),
        ({"passing_score_percent": 120}, "Passing score must be between 0 and 100 percent."),
    ],
)
def test_settings_problems(manager, settings, expected):
    quiz = build_quiz(manager, publish=False)
    manager.update_quiz_settings(quiz.id, **settings)
    assert manager.check_publishable(quiz.id) == [expected]


def test_all_problems_reported_together(manager):
    quiz = build_quiz(manager, questions=1, publish=False)
    manager.update_quiz_settings(quiz.id, title="", duration_minutes=0)
    with pytest.raises(ValidationError) as exc_info:
        manager.publish_quiz(quiz.id, T0)
    assert len(exc_info.value.problems) == 3


def test_published_quiz_cannot_be_edited(manager):
    quiz = build_quiz(manager)
    with pytest.raises(QuizAlreadyPublished):
        manager.add_question(quiz.id, "Late addition", make_options())
    with pytest.raises(QuizAlreadyPublished):
        manager.update_quiz_settings(quiz.id, duration_minutes=5)
    with pytest.raises(QuizAlreadyPublished):
        manager.publish_quiz(quiz.id, T0)


def test_returned_quiz_is_a_copy(manager):
    quiz = build_quiz(manager)
    quiz.questions.clear()
    assert manager.get_quiz(quiz.id).total_questions == 3


def test_update_and_delete_question_keep_ids(manager):
    quiz = build_quiz(manager, questions=3, publish=False)
    original_ids = [q.id for q in quiz.questions]

    updated = manager.update_question(quiz.id, 1, "  Rewritten  ", make_options(3, correct=2))
    assert updated.id == original_ids[1]
    assert updated.text == "Rewritten"
    assert updated.correct_option_id == 2

    manager.delete_question(quiz.id, 0)
    assert [q.id for q in manager.get_quiz(quiz.id).questions] == original_ids[1:]

    with pytest.raises(IndexError):
        manager.delete_question(quiz.id, 5)


def test_deadline_can_be_cleared(manager):
    quiz = build_quiz(manager, deadline=T0, publish=False)
    assert manager.update_quiz_settings(quiz.id, clear_deadline=True).deadline is None


def test_unknown_quiz(manager):
    with pytest.raises(QuizNotFound):
        manager.publish_quiz("missing", T0)
