"""In-memory attempt persistence with atomic create and compare-and-set writes."""

from __future__ import annotations

from dataclasses import replace
from threading import Lock

from classroom_quiz.core.errors import AttemptNotFound, DuplicateAttempt, PersistenceError
from classroom_quiz.core.models import Attempt, AttemptState, LockedAnswer, QuizDefinition
from classroom_quiz.core.services.quiz_repository import QuizRepository


class AttemptStore:
    """Stores attempts keyed by id and by (student, quiz).

    Every write builds the complete new record first and swaps it in under
    the lock, so a failed write leaves no partial attempt behind.
    """

    def __init__(self, quizzes: QuizRepository) -> None:
        self._quizzes = quizzes
        self._attempts: dict[str, Attempt] = {}
        self._by_student: dict[tuple[str, str], str] = {}
        self._lock = Lock()

    def load_quiz_definition(self, quiz_id: str) -> QuizDefinition:
        return self._quizzes.get_quiz(quiz_id)

    def create_attempt(self, attempt: Attempt) -> Attempt:
        """Insert ``attempt`` unless the student already has one for the quiz."""
        key = (attempt.student_id, attempt.quiz_id)
        with self._lock:
            if key in self._by_student:
                raise DuplicateAttempt(
                    f"Student {attempt.student_id} already has an attempt for quiz {attempt.quiz_id}."
                )
            if attempt.id in self._attempts:
                raise PersistenceError(f"Attempt id {attempt.id} is already in use.")
            stored = replace(attempt)
            self._attempts[stored.id] = stored
            self._by_student[key] = stored.id
            return replace(stored)

    def get_attempt(self, attempt_id: str) -> Attempt:
        with self._lock:
            return replace(self._require(attempt_id))

    def find_attempt(self, student_id: str, quiz_id: str) -> Attempt | None:
        with self._lock:
            attempt_id = self._by_student.get((student_id, quiz_id))
            if attempt_id is None:
                return None
            return replace(self._attempts[attempt_id])

    def compare_and_append(
        self,
        attempt_id: str,
        expected_cursor: int,
        answer: LockedAnswer,
    ) -> tuple[bool, Attempt]:
        """Append ``answer`` if the attempt is in progress at ``expected_cursor``.

        Returns ``(applied, current)``; ``current`` is the stored attempt after
        the call whether or not the append applied.
        """
        with self._lock:
            current = self._require(attempt_id)
            if current.state is not AttemptState.IN_PROGRESS or current.cursor != expected_cursor:
                return False, replace(current)
            updated = replace(
                current,
                locked_answers=current.locked_answers + (answer,),
                cursor=current.cursor + 1,
            )
            self._attempts[attempt_id] = updated
            return True, replace(updated)

    def compare_and_submit(
        self,
        attempt_id: str,
        expected_state: AttemptState,
        expected_cursor: int,
        new_attempt: Attempt,
    ) -> tuple[bool, Attempt]:
        """Swap in ``new_attempt`` if the stored state and cursor are still as expected.

        A moved cursor means an answer landed after ``new_attempt`` was built,
        so the caller has to rebuild it from the returned current attempt.
        """
        with self._lock:
            current = self._require(attempt_id)
            if current.state is not expected_state or current.cursor != expected_cursor:
                return False, replace(current)
            if new_attempt.id != attempt_id:
                raise PersistenceError(f"Cannot store attempt {new_attempt.id} under {attempt_id}.")
            stored = replace(new_attempt)
            self._attempts[attempt_id] = stored
            return True, replace(stored)

    def list_attempts(self, quiz_id: str) -> list[Attempt]:
        with self._lock:
            return [replace(a) for a in self._attempts.values() if a.quiz_id == quiz_id]

    def list_in_progress(self) -> list[Attempt]:
        with self._lock:
            return [
                replace(a) for a in self._attempts.values() if a.state is AttemptState.IN_PROGRESS
            ]

    def _require(self, attempt_id: str) -> Attempt:
        attempt = self._attempts.get(attempt_id)
        if attempt is None:
            raise AttemptNotFound(attempt_id)
        return attempt
