"""Derives a quiz's visible status from its timing policy and an instant.

Nothing here reads a clock or touches storage: the same inputs always give
the same status, so status is recomputed on every request instead of stored.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from classroom_quiz.core.models import (
    Attempt,
    QuizDefinition,
    QuizStatus,
    ReleaseKind,
)


def release_instant(quiz: QuizDefinition, now: datetime) -> datetime:
    """Instant the quiz becomes visible; ``now`` for immediate release."""
    policy = quiz.release_policy
    if policy.kind is ReleaseKind.SCHEDULED and policy.release_at is not None:
        return policy.release_at
    return now


def compute_status(quiz: QuizDefinition, now: datetime) -> QuizStatus:
    """Base status of ``quiz`` at ``now``, ignoring any student's attempts."""
    if not quiz.is_published:
        return QuizStatus.DRAFT

    release_at = release_instant(quiz, now)
    deadline = quiz.deadline
    if deadline is not None:
        # A zero-width window never opens.
        if release_at == deadline or now >= deadline:
            return QuizStatus.EXPIRED
    if release_at > now:
        return QuizStatus.SCHEDULED
    return QuizStatus.LIVE


def effective_status(quiz: QuizDefinition, now: datetime, attempt: Attempt | None) -> QuizStatus:
    """Status as seen by one student: ``COMPLETED`` once their attempt is terminal."""
    if attempt is not None and attempt.is_terminal:
        return QuizStatus.COMPLETED
    return compute_status(quiz, now)


def attempt_closes_at(quiz: QuizDefinition, started_at: datetime) -> datetime:
    """Last valid instant of an attempt: its duration or the quiz deadline, whichever is first."""
    closes_at = started_at + timedelta(minutes=quiz.duration_minutes)
    if quiz.deadline is not None and quiz.deadline < closes_at:
        return quiz.deadline
    return closes_at


def seconds_remaining(closes_at: datetime, now: datetime) -> int:
    return max(0, int((closes_at - now).total_seconds()))
