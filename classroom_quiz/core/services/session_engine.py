"""State machine for a student's attempt at a quiz."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
import logging
from uuid import uuid4

from classroom_quiz.constants.quiz_constants import SUBMISSION_GRACE_SECONDS
from classroom_quiz.core.errors import (
    AlreadyTerminal,
    AttemptNotFound,
    DuplicateAttempt,
    InvalidOption,
    NotLive,
    OutOfSequence,
)
from classroom_quiz.core.models import (
    Attempt,
    AttemptResult,
    AttemptState,
    LockedAnswer,
    QuizDefinition,
    QuizStatus,
    TerminationReason,
)
from classroom_quiz.core.services.attempt_store import AttemptStore
from classroom_quiz.core.services.scheduler import attempt_closes_at, compute_status
from classroom_quiz.core.services.scoreboard import score_attempt

logger = logging.getLogger(__name__)


class SessionEngine:
    """Runs attempts through ``IN_PROGRESS`` to a terminal state.

    All writes go through the store's atomic operations: create-if-absent on
    start, a cursor compare-and-set on answer, and a state compare-and-set on
    submit. Whichever terminal transition lands first wins; later ones read
    back the recorded result.
    """

    def __init__(self, store: AttemptStore, grace_seconds: int = SUBMISSION_GRACE_SECONDS) -> None:
        self._store = store
        self._grace = timedelta(seconds=grace_seconds)

    def start(self, student_id: str, quiz_id: str, now: datetime) -> Attempt:
        quiz = self._store.load_quiz_definition(quiz_id)
        if self._store.find_attempt(student_id, quiz_id) is not None:
            raise DuplicateAttempt(f"Student {student_id} already has an attempt for quiz {quiz_id}.")

        status = compute_status(quiz, now)
        if status is not QuizStatus.LIVE:
            raise NotLive(f"Quiz {quiz_id} is {status.value}, not live.")

        attempt = Attempt(
            id=uuid4().hex,
            quiz_id=quiz_id,
            student_id=student_id,
            started_at=now,
            closes_at=attempt_closes_at(quiz, now),
        )
        created = self._store.create_attempt(attempt)
        logger.info(
            "Attempt %s started by %s for quiz %s (closes %s)",
            created.id,
            student_id,
            quiz_id,
            created.closes_at.isoformat(),
        )
        return created

    def answer(self, attempt_id: str, question_id: int, option_id: int, now: datetime) -> Attempt:
        """Lock the answer for the question at the cursor and advance it."""
        attempt = self._store.get_attempt(attempt_id)
        if attempt.is_terminal:
            raise AlreadyTerminal(f"Attempt {attempt_id} is already {attempt.state.value}.")

        quiz = self._store.load_quiz_definition(attempt.quiz_id)
        if self._is_overdue(attempt, now):
            self._finalize(attempt, quiz, now, TerminationReason.TIMEOUT)
            raise AlreadyTerminal(f"Time is up for attempt {attempt_id}.")

        question = quiz.question_at(attempt.cursor)
        if question is None or question.id != question_id:
            raise OutOfSequence(
                f"Question {question_id} is not the current question of attempt {attempt_id}."
            )
        if not question.has_option(option_id):
            raise InvalidOption(f"Option {option_id} does not belong to question {question_id}.")

        locked = LockedAnswer(question_id=question_id, option_id=option_id, answered_at=now)
        applied, current = self._store.compare_and_append(attempt_id, attempt.cursor, locked)
        if not applied:
            if current.is_terminal:
                raise AlreadyTerminal(f"Attempt {attempt_id} is already {current.state.value}.")
            raise OutOfSequence(f"Question {question_id} was already answered in attempt {attempt_id}.")
        return current

    def submit(
        self,
        attempt_id: str,
        now: datetime,
        reason: TerminationReason = TerminationReason.MANUAL,
    ) -> AttemptResult:
        """Finish the attempt. Calling it again returns the recorded result.

        A ``TIMEOUT`` asked for before ``closes_at`` is recorded as ``MANUAL``;
        a real timeout is stamped at ``closes_at``.
        """
        attempt = self._store.get_attempt(attempt_id)
        if attempt.is_terminal:
            return self._recorded_result(attempt)
        quiz = self._store.load_quiz_definition(attempt.quiz_id)
        return self._finalize(attempt, quiz, now, reason)

    def refresh(self, attempt_id: str, now: datetime) -> Attempt:
        """Return the attempt, applying a pending timeout first."""
        attempt = self._store.get_attempt(attempt_id)
        if attempt.state is AttemptState.IN_PROGRESS and self._is_overdue(attempt, now):
            quiz = self._store.load_quiz_definition(attempt.quiz_id)
            self._finalize(attempt, quiz, now, TerminationReason.TIMEOUT)
            attempt = self._store.get_attempt(attempt_id)
        return attempt

    def resume(self, student_id: str, quiz_id: str, now: datetime) -> Attempt:
        """Return the student's attempt so an interrupted client can carry on.

        Resuming is allowed until the attempt window closes; after that the
        attempt is finalised as a timeout and returned in its terminal state.
        """
        attempt = self._store.find_attempt(student_id, quiz_id)
        if attempt is None:
            raise AttemptNotFound(f"{student_id}/{quiz_id}")
        return self.refresh(attempt.id, now)

    def expire_overdue(self, now: datetime) -> list[AttemptResult]:
        """Submit every in-progress attempt whose window has closed."""
        results: list[AttemptResult] = []
        for attempt in self._store.list_in_progress():
            if attempt.closes_at > now:
                continue
            quiz = self._store.load_quiz_definition(attempt.quiz_id)
            results.append(self._finalize(attempt, quiz, now, TerminationReason.TIMEOUT))
        return results

    def force_close(self, quiz_id: str, now: datetime) -> list[AttemptResult]:
        """End every in-progress attempt of a quiz on the teacher's request."""
        quiz = self._store.load_quiz_definition(quiz_id)
        results: list[AttemptResult] = []
        for attempt in self._store.list_attempts(quiz_id):
            if attempt.state is not AttemptState.IN_PROGRESS:
                continue
            results.append(
                self._finalize(
                    attempt,
                    quiz,
                    now,
                    TerminationReason.FORCED,
                    terminal_state=AttemptState.EXPIRED,
                )
            )
        return results

    def _is_overdue(self, attempt: Attempt, now: datetime) -> bool:
        return now > attempt.closes_at + self._grace

    def _finalize(
        self,
        attempt: Attempt,
        quiz: QuizDefinition,
        now: datetime,
        reason: TerminationReason,
        terminal_state: AttemptState = AttemptState.SUBMITTED,
    ) -> AttemptResult:
        if reason is TerminationReason.TIMEOUT:
            if now < attempt.closes_at:
                reason = TerminationReason.MANUAL
            else:
                # A timeout happens when the window closes, not when it is noticed.
                now = attempt.closes_at
        current = attempt
        while True:
            result = score_attempt(
                quiz,
                current,
                submitted_at=now,
                reason=reason,
                valid_until=current.closes_at + self._grace,
            )
            terminal = replace(
                current,
                state=terminal_state,
                submitted_at=now,
                termination_reason=reason,
                result=result,
            )
            applied, current = self._store.compare_and_submit(
                current.id, AttemptState.IN_PROGRESS, current.cursor, terminal
            )
            if applied:
                self._log_terminal(current, result)
                return result
            if current.is_terminal:
                return self._recorded_result(current)
            # An answer landed in between; score again with it included.

    @staticmethod
    def _recorded_result(attempt: Attempt) -> AttemptResult:
        if attempt.result is None:
            raise AlreadyTerminal(f"Attempt {attempt.id} is terminal but has no result.")
        return attempt.result

    @staticmethod
    def _log_terminal(attempt: Attempt, result: AttemptResult) -> None:
        if result.termination_reason is TerminationReason.TIMEOUT:
            logger.info(
                "Attempt %s by %s timed out with %d/%d answered",
                attempt.id,
                attempt.student_id,
                len(attempt.locked_answers),
                result.total_questions,
            )
        logger.info(
            "Attempt %s %s (%s): score %d/%d (%.1f%%)%s",
            attempt.id,
            attempt.state.value,
            result.termination_reason.value,
            result.score,
            result.total_questions,
            result.percent,
            " late" if result.late else "",
        )
