"""Background thread that submits attempts whose time has run out."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
import logging
from threading import Event, Thread

from classroom_quiz.constants.quiz_constants import TIMEOUT_SWEEP_INTERVAL_SECONDS
from classroom_quiz.core.errors import QuizError
from classroom_quiz.core.models import AttemptResult

logger = logging.getLogger(__name__)


class TimeoutSweeper:
    """Periodically calls ``expire`` with the current time on a daemon thread.

    The sweep races with manual submits only through the attempt store's
    compare-and-set, so a sweep that loses simply reads back the recorded result.
    """

    def __init__(
        self,
        expire: Callable[[datetime], list[AttemptResult]],
        clock: Callable[[], datetime],
        interval_seconds: float = TIMEOUT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._expire = expire
        self._clock = clock
        self._interval = interval_seconds
        self._stop = Event()
        self._thread: Thread | None = None

    def start(self) -> Thread:
        if self._thread is not None and self._thread.is_alive():
            return self._thread
        self._stop.clear()
        self._thread = Thread(target=self._run, name="QuizTimeoutSweeper", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def sweep_once(self) -> list[AttemptResult]:
        results = self._expire(self._clock())
        if results:
            logger.info("Timed out %d attempt(s)", len(results))
        return results

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.sweep_once()
            except QuizError:
                # A quiz or attempt vanished mid-sweep; the next pass sees fresh data.
                logger.warning("Timeout sweep rejected", exc_info=True)
            except Exception:
                # The loop outlives any single failed pass.
                logger.error("Timeout sweep failed", exc_info=True)
