"""Structural checks a quiz must pass before it can be published."""

from __future__ import annotations

from classroom_quiz.constants.quiz_constants import MAX_QUESTIONS, MIN_OPTIONS, MIN_QUESTIONS
from classroom_quiz.core.errors import ValidationError
from classroom_quiz.core.models import QuizDefinition


def collect_problems(quiz: QuizDefinition) -> list[str]:
    """Return every problem that blocks publishing, in a stable order."""
    problems: list[str] = []

    if not quiz.title or not quiz.title.strip():
        problems.append("Quiz title is required.")
    if not isinstance(quiz.duration_minutes, int) or quiz.duration_minutes <= 0:
        problems.append("Duration must be a positive number of minutes.")
    if not 0 <= quiz.passing_score_percent <= 100:
        problems.append("Passing score must be between 0 and 100 percent.")

    count = len(quiz.questions)
    if not MIN_QUESTIONS <= count <= MAX_QUESTIONS:
        problems.append(
            f"A quiz needs between {MIN_QUESTIONS} and {MAX_QUESTIONS} questions (has {count})."
        )

    for position, question in enumerate(quiz.questions, start=1):
        if not question.text.strip():
            problems.append(f"Question {position} has no text.")
        if len(question.options) < MIN_OPTIONS:
            problems.append(f"Question {position} needs at least {MIN_OPTIONS} options.")
        if any(not option.text.strip() for option in question.options):
            problems.append(f"Question {position} has an empty option.")
        correct = sum(1 for option in question.options if option.is_correct)
        if correct == 0:
            problems.append(f"Question {position} has no correct option.")
        elif correct > 1:
            problems.append(f"Question {position} has {correct} options marked correct.")

    return problems


def validate_for_publish(quiz: QuizDefinition) -> None:
    """Raise ``ValidationError`` listing all problems, or return quietly."""
    problems = collect_problems(quiz)
    if problems:
        raise ValidationError(problems)
