"""Application entry point for the classroom quiz service."""

from __future__ import annotations

from classroom_quiz.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from classroom_quiz.core.quiz_manager import QuizManager
from classroom_quiz.core.services.timeout_sweeper import TimeoutSweeper
from classroom_quiz.server.api_server import run_api_server
from classroom_quiz.utils.clock import utc_now
from classroom_quiz.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging, start the timeout sweeper, and serve the API."""
    logger = configure_logging()
    logger.info("Starting classroom quiz service on %s:%d", DEFAULT_HOST, DEFAULT_PORT)

    quiz_manager = QuizManager()
    sweeper = TimeoutSweeper(expire=quiz_manager.expire_overdue_sessions, clock=utc_now)
    sweeper.start()
    try:
        run_api_server(quiz_manager=quiz_manager, host=DEFAULT_HOST, port=DEFAULT_PORT)
    finally:
        sweeper.stop(timeout=2.0)
        logger.info("Classroom quiz service stopped")


if __name__ == "__main__":
    main()
