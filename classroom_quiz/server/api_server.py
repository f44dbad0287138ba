"""FastAPI server that exposes the quiz endpoints to the school portal."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from classroom_quiz.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from classroom_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from classroom_quiz.constants.quiz_constants import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_PASSING_SCORE_PERCENT,
)
from classroom_quiz.core import errors
from classroom_quiz.core.markdown_renderer import renderer
from classroom_quiz.core.models import (
    Attempt,
    AttemptResult,
    LiveProgress,
    Option,
    Question,
    QuizDefinition,
    QuizListing,
    ReleasePolicy,
    ResultSummary,
    TerminationReason,
)
from classroom_quiz.core.quiz_manager import QuizManager
from classroom_quiz.utils.clock import as_utc, utc_now

logger = logging.getLogger(__name__)

_ERROR_STATUS: dict[type[errors.QuizError], int] = {
    errors.QuizNotFound: 404,
    errors.AttemptNotFound: 404,
    errors.NotLive: 409,
    errors.DuplicateAttempt: 409,
    errors.OutOfSequence: 409,
    errors.AlreadyTerminal: 409,
    errors.QuizAlreadyPublished: 409,
    errors.ResultNotReady: 409,
    errors.ValidationError: 422,
    errors.InvalidOption: 422,
    errors.QuizImportError: 422,
    errors.PersistenceError: 503,
}


class OptionPayload(BaseModel):
    text: str
    is_correct: bool = False


class QuestionPayload(BaseModel):
    """Payload schema for a question added by a teacher."""

    text: str
    options: list[OptionPayload] = Field(default_factory=list)


class QuizCreatePayload(BaseModel):
    """Payload schema for a new Draft quiz."""

    title: str
    class_name: str
    subject: str
    teacher_id: str
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    passing_score_percent: float = DEFAULT_PASSING_SCORE_PERCENT
    release_at: datetime | None = None
    deadline: datetime | None = None
    questions: list[QuestionPayload] = Field(default_factory=list)


class StartPayload(BaseModel):
    student_id: str


class AnswerPayload(BaseModel):
    """Payload schema for a locked answer."""

    question_id: int
    option_id: int


def _get_quiz_manager_dependency(quiz_manager: QuizManager):
    def dependency() -> QuizManager:
        return quiz_manager

    return dependency


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _question_payload(question: Question, include_answers: bool) -> dict[str, object]:
    rendered = renderer.render_question(question)
    options: list[dict[str, object]] = []
    for option, option_html in zip(question.options, rendered.option_html):
        entry: dict[str, object] = {
            "id": option.id,
            "text": option.text,
            "html": option_html,
        }
        if include_answers:
            entry["is_correct"] = option.is_correct
        options.append(entry)
    return {
        "id": question.id,
        "text": question.text,
        "question_html": rendered.question_html,
        "options": options,
    }


def _quiz_payload(quiz: QuizDefinition, include_questions: bool = False) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": quiz.id,
        "title": quiz.title,
        "class_name": quiz.class_name,
        "subject": quiz.subject,
        "teacher_id": quiz.teacher_id,
        "total_questions": quiz.total_questions,
        "duration_minutes": quiz.duration_minutes,
        "passing_score_percent": quiz.passing_score_percent,
        "release": quiz.release_policy.kind.value,
        "release_at": _iso(quiz.release_policy.release_at),
        "deadline": _iso(quiz.deadline),
        "publish_state": quiz.publish_state.value,
        "published_at": _iso(quiz.published_at),
    }
    if include_questions:
        payload["questions"] = [_question_payload(q, include_answers=True) for q in quiz.questions]
    return payload


def _attempt_payload(attempt: Attempt, now: datetime) -> dict[str, object]:
    remaining = 0
    if not attempt.is_terminal:
        remaining = max(0, int((attempt.closes_at - now).total_seconds()))
    return {
        "id": attempt.id,
        "quiz_id": attempt.quiz_id,
        "student_id": attempt.student_id,
        "state": attempt.state.value,
        "started_at": attempt.started_at.isoformat(),
        "closes_at": attempt.closes_at.isoformat(),
        "seconds_remaining": remaining,
        "submitted_at": _iso(attempt.submitted_at),
        "termination_reason": attempt.termination_reason.value if attempt.termination_reason else None,
        "cursor": attempt.cursor,
        "answered_question_ids": [answer.question_id for answer in attempt.locked_answers],
        "score": attempt.result.score if attempt.result is not None else None,
    }


def _result_payload(result: AttemptResult) -> dict[str, object]:
    return {
        "attempt_id": result.attempt_id,
        "quiz_id": result.quiz_id,
        "student_id": result.student_id,
        "score": result.score,
        "total_questions": result.total_questions,
        "percent": round(result.percent, 2),
        "passed": result.passed,
        "submitted_at": result.submitted_at.isoformat(),
        "termination_reason": result.termination_reason.value,
        "late": result.late,
        "outcomes": [
            {
                "question_id": outcome.question_id,
                "chosen_option_id": outcome.chosen_option_id,
                "correct_option_id": outcome.correct_option_id,
                "is_correct": outcome.is_correct,
            }
            for outcome in result.outcomes
        ],
    }


def _summary_payload(summary: ResultSummary) -> dict[str, object]:
    return {
        "quiz_id": summary.quiz_id,
        "total_questions": summary.total_questions,
        "attempt_count": summary.attempt_count,
        "class_average": round(summary.class_average, 2),
        "pass_count": summary.pass_count,
        "pass_rate": round(summary.pass_rate, 2),
        "highest_percent": summary.highest_percent,
        "lowest_percent": summary.lowest_percent,
        "rankings": [
            {
                "rank": row.rank,
                "student_id": row.student_id,
                "attempt_id": row.attempt_id,
                "score": row.score,
                "percent": round(row.percent, 2),
                "passed": row.passed,
                "submitted_at": row.submitted_at.isoformat(),
                "termination_reason": row.termination_reason.value,
            }
            for row in summary.rankings
        ],
    }


def _listing_payload(listing: QuizListing, now: datetime) -> dict[str, object]:
    payload = _quiz_payload(listing.quiz)
    payload["status"] = listing.effective_status.value
    payload["attempt"] = _attempt_payload(listing.attempt, now) if listing.attempt else None
    return payload


def _progress_payload(row: LiveProgress) -> dict[str, object]:
    return {
        "student_id": row.student_id,
        "attempt_id": row.attempt_id,
        "state": row.state.value,
        "answered": row.answered,
        "total_questions": row.total_questions,
        "seconds_remaining": row.seconds_remaining,
        "score": row.score,
    }


def _options_from_payload(payload: QuestionPayload) -> list[Option]:
    return [
        Option(id=position, text=option.text, is_correct=option.is_correct)
        for position, option in enumerate(payload.options)
    ]


def create_api_app(
    quiz_manager: QuizManager,
    clock: Callable[[], datetime] = utc_now,
) -> FastAPI:
    """Create a FastAPI application wired to the provided quiz manager.

    ``clock`` is read once per request and handed to the core as ``now``.
    """
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    quiz_manager_dep = _get_quiz_manager_dependency(quiz_manager)

    @app.exception_handler(errors.QuizError)
    async def quiz_error_handler(request: Request, exc: errors.QuizError) -> JSONResponse:
        status_code = _ERROR_STATUS.get(type(exc), 400)
        content: dict[str, object] = {"detail": str(exc), "code": exc.code}
        if isinstance(exc, errors.ValidationError):
            content["problems"] = exc.problems
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        else:
            logger.warning("%s %s rejected (%s): %s", request.method, request.url.path, exc.code, exc)
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "An internal server error occurred.", "code": "internal_error"},
        )

    @app.get("/")
    def root() -> dict[str, object]:
        return {"name": APP_NAME, "version": APP_VERSION}

    # --- Teacher endpoints ---

    @app.post("/quizzes", status_code=201)
    def create_quiz(
        payload: QuizCreatePayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        release_policy = ReleasePolicy.immediate()
        if payload.release_at is not None:
            release_policy = ReleasePolicy.scheduled_at(as_utc(payload.release_at))
        quiz = manager.create_quiz(
            payload.title,
            payload.class_name,
            payload.subject,
            payload.teacher_id,
            duration_minutes=payload.duration_minutes,
            passing_score_percent=payload.passing_score_percent,
            release_policy=release_policy,
            deadline=as_utc(payload.deadline) if payload.deadline is not None else None,
            created_at=clock(),
        )
        for question in payload.questions:
            manager.add_question(quiz.id, question.text, _options_from_payload(question))
        return _quiz_payload(manager.get_quiz(quiz.id), include_questions=True)

    @app.get("/quizzes/{quiz_id}")
    def get_quiz(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _quiz_payload(manager.get_quiz(quiz_id), include_questions=True)

    @app.post("/quizzes/{quiz_id}/questions", status_code=201)
    def add_question(
        quiz_id: str,
        payload: QuestionPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        question = manager.add_question(quiz_id, payload.text, _options_from_payload(payload))
        return _question_payload(question, include_answers=True)

    @app.delete("/quizzes/{quiz_id}/questions/{index}", status_code=204)
    def delete_question(
        quiz_id: str,
        index: int,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> None:
        try:
            manager.delete_question(quiz_id, index)
        except IndexError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.post("/quizzes/{quiz_id}/publish")
    def publish_quiz(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _quiz_payload(manager.publish_quiz(quiz_id, clock()))

    @app.get("/quizzes/{quiz_id}/results")
    def get_results(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _summary_payload(manager.get_results(quiz_id))

    @app.get("/quizzes/{quiz_id}/live")
    def get_live_progress(
        quiz_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        rows = manager.get_live_progress(quiz_id, clock())
        return {"quiz_id": quiz_id, "students": [_progress_payload(row) for row in rows]}

    @app.post("/quizzes/{quiz_id}/end")
    def end_quiz(quiz_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        closed = manager.end_quiz(quiz_id, clock())
        return {"quiz_id": quiz_id, "closed_attempts": len(closed)}

    # --- Student endpoints ---

    @app.get("/students/{student_id}/quizzes")
    def list_available_quizzes(
        student_id: str,
        class_name: str | None = None,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> list[dict[str, object]]:
        now = clock()
        listings = manager.list_available_quizzes(student_id, now, class_name=class_name)
        return [_listing_payload(listing, now) for listing in listings]

    @app.post("/quizzes/{quiz_id}/sessions", status_code=201)
    def start_session(
        quiz_id: str,
        payload: StartPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        now = clock()
        return _attempt_payload(manager.start_session(payload.student_id, quiz_id, now), now)

    @app.post("/quizzes/{quiz_id}/sessions/resume")
    def resume_session(
        quiz_id: str,
        payload: StartPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        now = clock()
        return _attempt_payload(manager.resume_session(payload.student_id, quiz_id, now), now)

    @app.get("/sessions/{attempt_id}")
    def get_session(attempt_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        now = clock()
        return _attempt_payload(manager.get_session(attempt_id, now), now)

    @app.get("/sessions/{attempt_id}/question")
    def get_current_question(
        attempt_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        question = manager.get_current_question(attempt_id, clock())
        if question is None:
            return {"question": None}
        # Correct flags stay on the server until the attempt is scored.
        return {"question": _question_payload(question, include_answers=False)}

    @app.post("/sessions/{attempt_id}/answers")
    def submit_answer(
        attempt_id: str,
        payload: AnswerPayload,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        now = clock()
        attempt = manager.submit_answer(attempt_id, payload.question_id, payload.option_id, now)
        return _attempt_payload(attempt, now)

    @app.post("/sessions/{attempt_id}/submit")
    def submit_session(
        attempt_id: str,
        manager: QuizManager = Depends(quiz_manager_dep),
    ) -> dict[str, object]:
        # Timeouts come only from the sweeper or a late read, never from the client.
        return _result_payload(
            manager.submit_session(attempt_id, clock(), TerminationReason.MANUAL)
        )

    @app.get("/sessions/{attempt_id}/result")
    def get_result(attempt_id: str, manager: QuizManager = Depends(quiz_manager_dep)) -> dict[str, object]:
        return _result_payload(manager.get_attempt_result(attempt_id))

    return app


def run_api_server(
    quiz_manager: QuizManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> None:
    """Serve the API with uvicorn until the process is stopped."""
    app = create_api_app(quiz_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)
    server.run()
