"""Utilities for importing quizzes from a human-friendly text file.

File format: one header block, then question blocks, separated by blank lines
or '---':

    TITLE: Weekly Algebra
    CLASS: 9-A
    SUBJECT: Mathematics
    DURATION: 30            (minutes)
    PASSING: 40             (percent, optional)
    RELEASE: NOW | 2026-03-01T09:00:00+00:00
    DEADLINE: 2026-03-01T10:00:00+00:00   (optional)

    Q: Question text (supports markdown + LaTeX). Additional lines until the
       next marker are treated as part of the question.
    A: First option text
    B: Second option text
    ...                     (up to F)
    CORRECT: A|B|...

Imported quizzes are always Drafts; publishing still runs the usual checks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from classroom_quiz.constants.quiz_constants import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_PASSING_SCORE_PERCENT,
    MAX_IMPORT_OPTIONS,
)
from classroom_quiz.core.errors import QuizImportError
from classroom_quiz.core.models import Option, Question, QuizDefinition, ReleasePolicy


@dataclass(slots=True)
class ImportedQuiz:
    """Container for the source file and the parsed Draft quiz."""

    source_path: Path
    quiz: QuizDefinition


OPTION_LETTERS = ("A", "B", "C", "D", "E", "F")[:MAX_IMPORT_OPTIONS]
_HEADER_KEYS = ("TITLE", "CLASS", "SUBJECT", "DURATION", "PASSING", "RELEASE", "DEADLINE")


def load_quiz_from_file(file_path: Path, teacher_id: str) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    quiz = parse_quiz_text(text, teacher_id)
    return ImportedQuiz(source_path=file_path, quiz=quiz)


def parse_quiz_text(text: str, teacher_id: str) -> QuizDefinition:
    blocks = _split_blocks(text)
    if not blocks:
        raise QuizImportError("Quiz file is empty.")

    header: dict[str, str] = {}
    if not _is_question_block(blocks[0]):
        header = _parse_header(blocks.pop(0))

    questions = [_parse_block(block) for block in blocks]
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")

    title = header.get("TITLE", "")
    if not title:
        raise QuizImportError("TITLE is required.")

    return QuizDefinition(
        id="",  # assigned when the quiz is stored
        title=title,
        class_name=header.get("CLASS", ""),
        subject=header.get("SUBJECT", ""),
        teacher_id=teacher_id,
        questions=questions,
        duration_minutes=_parse_int(header.get("DURATION"), "DURATION", DEFAULT_DURATION_MINUTES),
        passing_score_percent=_parse_percent(header.get("PASSING")),
        release_policy=_parse_release(header.get("RELEASE")),
        deadline=_parse_timestamp(header["DEADLINE"], "DEADLINE") if header.get("DEADLINE") else None,
    )


def _split_blocks(text: str) -> list[str]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            # Blank line encountered after content - finalize current block
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())
    return [block for block in blocks if block]


def _is_question_block(block: str) -> bool:
    return block.lstrip().upper().startswith("Q:")


def _parse_header(block: str) -> dict[str, str]:
    header: dict[str, str] = {}
    for raw_line in block.splitlines():
        line = raw_line.strip()
        if ":" not in line:
            raise QuizImportError(f"Header line must look like 'KEY: value': '{line}'.")
        key, value = line.split(":", 1)
        key = key.strip().upper()
        if key not in _HEADER_KEYS:
            raise QuizImportError(f"Unknown header field '{key}'.")
        header[key] = value.strip()
    return header


def _parse_block(block: str) -> Question:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in OPTION_LETTERS and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in OPTION_LETTERS:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")

    letters = [letter for letter in OPTION_LETTERS if letter in options]
    if letters != list(OPTION_LETTERS[: len(letters)]):
        raise QuizImportError("Options must be lettered consecutively starting at A.")
    if any(not options[letter].strip() for letter in letters):
        raise QuizImportError("Option text cannot be empty.")
    if correct_letter is None:
        raise QuizImportError("CORRECT is required for every question.")
    if correct_letter not in letters:
        raise QuizImportError(f"CORRECT must name one of the options ({', '.join(letters)}).")

    return Question(
        id=0,  # overwritten by the repository when the quiz is stored
        text=question_text,
        options=[
            Option(id=position, text=options[letter].strip(), is_correct=letter == correct_letter)
            for position, letter in enumerate(letters)
        ],
    )


def _parse_int(raw_value: str | None, field_name: str, default: int) -> int:
    if raw_value is None or not raw_value:
        return default
    try:
        return int(raw_value)
    except ValueError as exc:
        raise QuizImportError(f"{field_name} must be a whole number.") from exc


def _parse_percent(raw_value: str | None) -> float:
    if raw_value is None or not raw_value:
        return DEFAULT_PASSING_SCORE_PERCENT
    try:
        return float(raw_value.rstrip("%"))
    except ValueError as exc:
        raise QuizImportError("PASSING must be a number of percent.") from exc


def _parse_release(raw_value: str | None) -> ReleasePolicy:
    if raw_value is None or not raw_value or raw_value.upper() == "NOW":
        return ReleasePolicy.immediate()
    return ReleasePolicy.scheduled_at(_parse_timestamp(raw_value, "RELEASE"))


def _parse_timestamp(raw_value: str, field_name: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(raw_value)
    except ValueError as exc:
        raise QuizImportError(f"{field_name} must be an ISO 8601 timestamp.") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
