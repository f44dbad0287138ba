"""Service for storing quiz definitions and their questions."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import replace
from datetime import datetime
import logging
from threading import Lock
from uuid import uuid4

from classroom_quiz.constants.quiz_constants import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_PASSING_SCORE_PERCENT,
)
from classroom_quiz.core.errors import QuizAlreadyPublished, QuizNotFound
from classroom_quiz.core.models import (
    Option,
    PublishState,
    Question,
    QuizDefinition,
    ReleasePolicy,
)
from classroom_quiz.core.services.quiz_validator import validate_for_publish

logger = logging.getLogger(__name__)


class QuizRepository:
    """Owns quiz definitions. Drafts are editable, published quizzes are frozen.

    Callers always receive copies, so nothing outside the repository can
    mutate a stored definition.
    """

    def __init__(self) -> None:
        self._quizzes: dict[str, QuizDefinition] = {}
        self._question_counter: int = 0
        self._lock = Lock()

    def create_quiz(
        self,
        title: str,
        class_name: str,
        subject: str,
        teacher_id: str,
        *,
        duration_minutes: int = DEFAULT_DURATION_MINUTES,
        passing_score_percent: float = DEFAULT_PASSING_SCORE_PERCENT,
        release_policy: ReleasePolicy | None = None,
        deadline: datetime | None = None,
        created_at: datetime | None = None,
    ) -> QuizDefinition:
        """Create an empty Draft quiz."""
        quiz = QuizDefinition(
            id=uuid4().hex,
            title=title.strip(),
            class_name=class_name.strip(),
            subject=subject.strip(),
            teacher_id=teacher_id,
            duration_minutes=duration_minutes,
            passing_score_percent=passing_score_percent,
            release_policy=release_policy or ReleasePolicy.immediate(),
            deadline=deadline,
            created_at=created_at,
        )
        with self._lock:
            self._quizzes[quiz.id] = quiz
            return deepcopy(quiz)

    def get_quiz(self, quiz_id: str) -> QuizDefinition:
        with self._lock:
            return deepcopy(self._require(quiz_id))

    def list_quizzes(self, class_name: str | None = None) -> list[QuizDefinition]:
        """Return all quizzes, optionally only those of one class."""
        with self._lock:
            quizzes = [
                quiz
                for quiz in self._quizzes.values()
                if class_name is None or quiz.class_name == class_name
            ]
            return [deepcopy(quiz) for quiz in quizzes]

    def add_question(self, quiz_id: str, text: str, options: list[Option]) -> Question:
        """Append a question to a Draft quiz. Option ids are renumbered by position."""
        with self._lock:
            quiz = self._require_draft(quiz_id)
            question = self._prepare_question(self._next_question_id(), text, options)
            quiz.questions.append(question)
            return deepcopy(question)

    def update_question(self, quiz_id: str, index: int, text: str, options: list[Option]) -> Question:
        with self._lock:
            quiz = self._require_draft(quiz_id)
            if not 0 <= index < len(quiz.questions):
                raise IndexError(f"Question index {index} out of range")
            # Preserve the original ID
            question = self._prepare_question(quiz.questions[index].id, text, options)
            quiz.questions[index] = question
            return deepcopy(question)

    def delete_question(self, quiz_id: str, index: int) -> None:
        with self._lock:
            quiz = self._require_draft(quiz_id)
            if not 0 <= index < len(quiz.questions):
                raise IndexError(f"Question index {index} out of range")
            quiz.questions.pop(index)

    def update_settings(
        self,
        quiz_id: str,
        *,
        title: str | None = None,
        duration_minutes: int | None = None,
        passing_score_percent: float | None = None,
        release_policy: ReleasePolicy | None = None,
        deadline: datetime | None = None,
        clear_deadline: bool = False,
    ) -> QuizDefinition:
        """Change the settings of a Draft quiz."""
        with self._lock:
            quiz = self._require_draft(quiz_id)
            if title is not None:
                quiz.title = title.strip()
            if duration_minutes is not None:
                quiz.duration_minutes = duration_minutes
            if passing_score_percent is not None:
                quiz.passing_score_percent = passing_score_percent
            if release_policy is not None:
                quiz.release_policy = release_policy
            if clear_deadline:
                quiz.deadline = None
            elif deadline is not None:
                quiz.deadline = deadline
            return deepcopy(quiz)

    def publish(self, quiz_id: str, now: datetime) -> QuizDefinition:
        """Validate and publish a Draft quiz; the stored quiz is untouched on failure."""
        with self._lock:
            quiz = self._require_draft(quiz_id)
            validate_for_publish(quiz)
            published = replace(quiz, publish_state=PublishState.PUBLISHED, published_at=now)
            self._quizzes[quiz_id] = published
        logger.info("Quiz %s published with %d questions", quiz_id, published.total_questions)
        return deepcopy(published)

    def save_imported(self, quiz: QuizDefinition) -> QuizDefinition:
        """Store a parsed quiz as a new Draft with fresh identifiers."""
        with self._lock:
            stored = replace(
                deepcopy(quiz),
                id=uuid4().hex,
                publish_state=PublishState.DRAFT,
                published_at=None,
                questions=[
                    self._prepare_question(self._next_question_id(), q.text, q.options)
                    for q in quiz.questions
                ],
            )
            self._quizzes[stored.id] = stored
            return deepcopy(stored)

    def _require(self, quiz_id: str) -> QuizDefinition:
        quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise QuizNotFound(quiz_id)
        return quiz

    def _require_draft(self, quiz_id: str) -> QuizDefinition:
        quiz = self._require(quiz_id)
        if quiz.is_published:
            raise QuizAlreadyPublished(f"Quiz {quiz_id} is published and can no longer be edited.")
        return quiz

    def _next_question_id(self) -> int:
        self._question_counter += 1
        return self._question_counter

    @staticmethod
    def _prepare_question(question_id: int, text: str, options: list[Option]) -> Question:
        """Normalize text and renumber options. Structural checks happen at publish time."""
        return Question(
            id=question_id,
            text=text.strip(),
            options=[
                Option(id=position, text=option.text.strip(), is_correct=bool(option.is_correct))
                for position, option in enumerate(options)
            ],
        )
