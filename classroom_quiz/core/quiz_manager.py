"""Business logic for quizzes shared by the API server and background jobs."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from classroom_quiz.constants.quiz_constants import SUBMISSION_GRACE_SECONDS
from classroom_quiz.core.errors import ResultNotReady
from classroom_quiz.core.models import (
    Attempt,
    AttemptResult,
    LiveProgress,
    Option,
    Question,
    QuizDefinition,
    QuizListing,
    RankedResult,
    ReleasePolicy,
    ResultSummary,
    TerminationReason,
)
from classroom_quiz.core.quiz_exporter import save_quiz_to_file
from classroom_quiz.core.quiz_importer import load_quiz_from_file
from classroom_quiz.core.services.attempt_store import AttemptStore
from classroom_quiz.core.services.quiz_repository import QuizRepository
from classroom_quiz.core.services.quiz_validator import collect_problems
from classroom_quiz.core.services.scheduler import (
    effective_status,
    release_instant,
    seconds_remaining,
)
from classroom_quiz.core.services.scoreboard import summarize, top_scorers
from classroom_quiz.core.services.session_engine import SessionEngine


class QuizManager:
    """Facade for quiz services: Repository, Attempt Store, Session Engine and Scoreboard.

    Every time-dependent call takes ``now`` from the caller; nothing here reads
    the clock.
    """

    def __init__(
        self,
        repository: QuizRepository | None = None,
        attempts: AttemptStore | None = None,
        grace_seconds: int = SUBMISSION_GRACE_SECONDS,
    ) -> None:
        self._repository = repository or QuizRepository()
        self._attempts = attempts or AttemptStore(self._repository)
        self._engine = SessionEngine(self._attempts, grace_seconds=grace_seconds)

    # --- Authoring ---

    def create_quiz(
        self,
        title: str,
        class_name: str,
        subject: str,
        teacher_id: str,
        **settings: object,
    ) -> QuizDefinition:
        return self._repository.create_quiz(title, class_name, subject, teacher_id, **settings)

    def get_quiz(self, quiz_id: str) -> QuizDefinition:
        return self._repository.get_quiz(quiz_id)

    def list_quizzes(self, class_name: str | None = None) -> list[QuizDefinition]:
        return self._repository.list_quizzes(class_name)

    def add_question(self, quiz_id: str, text: str, options: list[Option]) -> Question:
        return self._repository.add_question(quiz_id, text, options)

    def update_question(self, quiz_id: str, index: int, text: str, options: list[Option]) -> Question:
        return self._repository.update_question(quiz_id, index, text, options)

    def delete_question(self, quiz_id: str, index: int) -> None:
        self._repository.delete_question(quiz_id, index)

    def update_quiz_settings(
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
        return self._repository.update_settings(
            quiz_id,
            title=title,
            duration_minutes=duration_minutes,
            passing_score_percent=passing_score_percent,
            release_policy=release_policy,
            deadline=deadline,
            clear_deadline=clear_deadline,
        )

    def check_publishable(self, quiz_id: str) -> list[str]:
        """Problems that would block publishing; empty when the quiz is ready."""
        return collect_problems(self._repository.get_quiz(quiz_id))

    def publish_quiz(self, quiz_id: str, now: datetime) -> QuizDefinition:
        return self._repository.publish(quiz_id, now)

    def import_quiz_file(self, file_path: Path, teacher_id: str) -> QuizDefinition:
        imported = load_quiz_from_file(file_path, teacher_id)
        return self._repository.save_imported(imported.quiz)

    def export_quiz_file(self, quiz_id: str, file_path: Path) -> None:
        save_quiz_to_file(file_path, self._repository.get_quiz(quiz_id))

    # --- Student sessions ---

    def list_available_quizzes(
        self,
        student_id: str,
        now: datetime,
        class_name: str | None = None,
    ) -> list[QuizListing]:
        """Published quizzes with the status this student sees, newest release first."""
        listings: list[QuizListing] = []
        for quiz in self._repository.list_quizzes(class_name):
            if not quiz.is_published:
                continue
            attempt = self._attempts.find_attempt(student_id, quiz.id)
            if attempt is not None:
                attempt = self._engine.refresh(attempt.id, now)
            listings.append(
                QuizListing(
                    quiz=quiz,
                    effective_status=effective_status(quiz, now, attempt),
                    attempt=attempt,
                )
            )
        listings.sort(
            key=lambda listing: release_instant(listing.quiz, listing.quiz.published_at or now),
            reverse=True,
        )
        return listings

    def start_session(self, student_id: str, quiz_id: str, now: datetime) -> Attempt:
        return self._engine.start(student_id, quiz_id, now)

    def resume_session(self, student_id: str, quiz_id: str, now: datetime) -> Attempt:
        return self._engine.resume(student_id, quiz_id, now)

    def get_session(self, attempt_id: str, now: datetime) -> Attempt:
        return self._engine.refresh(attempt_id, now)

    def get_current_question(self, attempt_id: str, now: datetime) -> Question | None:
        """The question at the attempt's cursor, or None once nothing is left to answer."""
        attempt = self._engine.refresh(attempt_id, now)
        if attempt.is_terminal:
            return None
        return self._repository.get_quiz(attempt.quiz_id).question_at(attempt.cursor)

    def submit_answer(self, attempt_id: str, question_id: int, option_id: int, now: datetime) -> Attempt:
        return self._engine.answer(attempt_id, question_id, option_id, now)

    def submit_session(
        self,
        attempt_id: str,
        now: datetime,
        reason: TerminationReason = TerminationReason.MANUAL,
    ) -> AttemptResult:
        return self._engine.submit(attempt_id, now, reason)

    def get_attempt_result(self, attempt_id: str) -> AttemptResult:
        attempt = self._attempts.get_attempt(attempt_id)
        if attempt.result is None:
            raise ResultNotReady(f"Attempt {attempt_id} has not been submitted yet.")
        return attempt.result

    def expire_overdue_sessions(self, now: datetime) -> list[AttemptResult]:
        return self._engine.expire_overdue(now)

    # --- Teacher views ---

    def get_results(self, quiz_id: str) -> ResultSummary:
        quiz = self._repository.get_quiz(quiz_id)
        return summarize(quiz, self._attempts.list_attempts(quiz_id))

    def get_top_scorers(self, quiz_id: str, limit: int = 3) -> list[RankedResult]:
        return top_scorers(self.get_results(quiz_id), limit)

    def get_live_progress(self, quiz_id: str, now: datetime) -> list[LiveProgress]:
        """Progress of every student who has started the quiz."""
        quiz = self._repository.get_quiz(quiz_id)
        rows = [
            LiveProgress(
                student_id=attempt.student_id,
                attempt_id=attempt.id,
                state=attempt.state,
                answered=len(attempt.locked_answers),
                total_questions=quiz.total_questions,
                seconds_remaining=0 if attempt.is_terminal else seconds_remaining(attempt.closes_at, now),
                score=attempt.result.score if attempt.result is not None else None,
            )
            for attempt in self._attempts.list_attempts(quiz_id)
        ]
        return sorted(rows, key=lambda row: row.student_id)

    def end_quiz(self, quiz_id: str, now: datetime) -> list[AttemptResult]:
        """Close every running attempt of the quiz immediately."""
        return self._engine.force_close(quiz_id, now)
