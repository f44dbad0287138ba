"""Service for scoring attempts and ranking a class."""

from __future__ import annotations

from datetime import datetime

from classroom_quiz.core.models import (
    Attempt,
    AttemptResult,
    QuestionOutcome,
    QuizDefinition,
    RankedResult,
    ResultSummary,
    TerminationReason,
)


def score_attempt(
    quiz: QuizDefinition,
    attempt: Attempt,
    submitted_at: datetime,
    reason: TerminationReason,
    valid_until: datetime,
) -> AttemptResult:
    """Score the answers locked at or before ``valid_until``.

    Unanswered questions count as incorrect. The result depends only on the
    arguments, so scoring the same attempt twice gives the same numbers.
    """
    chosen = {
        answer.question_id: answer.option_id
        for answer in attempt.locked_answers
        if answer.answered_at <= valid_until
    }

    outcomes: list[QuestionOutcome] = []
    for question in quiz.questions:
        chosen_id = chosen.get(question.id)
        correct_id = question.correct_option_id
        outcomes.append(
            QuestionOutcome(
                question_id=question.id,
                chosen_option_id=chosen_id,
                correct_option_id=correct_id,
                is_correct=chosen_id is not None and chosen_id == correct_id,
            )
        )

    score = sum(1 for outcome in outcomes if outcome.is_correct)
    total = quiz.total_questions
    percent = (score / total) * 100 if total else 0.0
    return AttemptResult(
        attempt_id=attempt.id,
        quiz_id=quiz.id,
        student_id=attempt.student_id,
        score=score,
        total_questions=total,
        percent=percent,
        passed=percent >= quiz.passing_score_percent,
        submitted_at=submitted_at,
        termination_reason=reason,
        late=submitted_at > valid_until,
        outcomes=tuple(outcomes),
    )


def rank_results(results: list[AttemptResult]) -> list[RankedResult]:
    """Order by score descending, earlier submission first on equal scores.

    Entries with the same score and the same submission instant share a rank.
    """
    ordered = sorted(results, key=lambda r: (-r.score, r.submitted_at, r.student_id))
    rows: list[RankedResult] = []
    previous: tuple[int, datetime] | None = None
    rank = 0
    for position, result in enumerate(ordered, start=1):
        key = (result.score, result.submitted_at)
        if key != previous:
            rank = position
            previous = key
        rows.append(
            RankedResult(
                rank=rank,
                student_id=result.student_id,
                attempt_id=result.attempt_id,
                score=result.score,
                percent=result.percent,
                passed=result.passed,
                submitted_at=result.submitted_at,
                termination_reason=result.termination_reason,
            )
        )
    return rows


def summarize(quiz: QuizDefinition, attempts: list[Attempt]) -> ResultSummary:
    """Build the class view from the full set of terminal attempts."""
    results = [a.result for a in attempts if a.is_terminal and a.result is not None]
    percents = [r.percent for r in results]
    pass_count = sum(1 for r in results if r.passed)
    count = len(results)
    return ResultSummary(
        quiz_id=quiz.id,
        total_questions=quiz.total_questions,
        attempt_count=count,
        class_average=sum(percents) / count if count else 0.0,
        pass_count=pass_count,
        pass_rate=(pass_count / count) * 100 if count else 0.0,
        highest_percent=max(percents) if percents else None,
        lowest_percent=min(percents) if percents else None,
        rankings=tuple(rank_results(results)),
    )


def top_scorers(summary: ResultSummary, limit: int = 3) -> list[RankedResult]:
    """Return the first ``limit`` ranked rows (the podium on the result screen)."""
    return list(summary.rankings[:limit])
