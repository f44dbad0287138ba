"""Utilities for exporting quizzes to the plain-text format used for imports."""

from __future__ import annotations

from pathlib import Path

from classroom_quiz.core.models import Question, QuizDefinition, ReleaseKind
from classroom_quiz.core.quiz_importer import OPTION_LETTERS


def save_quiz_to_file(file_path: Path, quiz: QuizDefinition) -> None:
    """Persist the quiz to disk in the text import format."""

    if not quiz.questions:
        raise ValueError("Cannot export an empty quiz.")
    if any(len(question.options) > len(OPTION_LETTERS) for question in quiz.questions):
        raise ValueError(f"The text format supports at most {len(OPTION_LETTERS)} options.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_text(serialize_quiz(quiz), encoding="utf-8")


def serialize_quiz(quiz: QuizDefinition) -> str:
    blocks = [_serialize_header(quiz)] + [_serialize_question(q) for q in quiz.questions]
    return "\n\n---\n\n".join(blocks) + "\n"


def _serialize_header(quiz: QuizDefinition) -> str:
    lines = [
        f"TITLE: {quiz.title}",
        f"CLASS: {quiz.class_name}",
        f"SUBJECT: {quiz.subject}",
        f"DURATION: {quiz.duration_minutes}",
        f"PASSING: {quiz.passing_score_percent:g}",
    ]
    policy = quiz.release_policy
    if policy.kind is ReleaseKind.SCHEDULED and policy.release_at is not None:
        lines.append(f"RELEASE: {policy.release_at.isoformat()}")
    else:
        lines.append("RELEASE: NOW")
    if quiz.deadline is not None:
        lines.append(f"DEADLINE: {quiz.deadline.isoformat()}")
    return "\n".join(lines)


def _serialize_question(question: Question) -> str:
    lines: list[str] = []

    question_lines = question.text.splitlines() or [question.text]
    lines.append(f"Q: {question_lines[0] if question_lines else ''}")
    lines.extend(question_lines[1:])

    correct_letter: str | None = None
    for letter, option in zip(OPTION_LETTERS, question.options):
        option_lines = option.text.splitlines() or [option.text]
        lines.append(f"{letter}: {option_lines[0] if option_lines else ''}")
        lines.extend(option_lines[1:])
        if option.is_correct and correct_letter is None:
            correct_letter = letter

    if correct_letter is not None:
        lines.append(f"CORRECT: {correct_letter}")

    return "\n".join(lines)
