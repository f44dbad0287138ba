"""Error types raised by the quiz core.

Every rejection leaves stored state unchanged. ``code`` is a stable identifier
that the API layer sends back alongside the message.
"""

from __future__ import annotations


class QuizError(Exception):
    """Base class for recoverable quiz rejections."""

    code = "quiz_error"


class QuizNotFound(QuizError):
    code = "quiz_not_found"

    def __init__(self, quiz_id: str) -> None:
        super().__init__(f"Quiz {quiz_id} not found.")
        self.quiz_id = quiz_id


class AttemptNotFound(QuizError):
    code = "attempt_not_found"

    def __init__(self, attempt_id: str) -> None:
        super().__init__(f"Attempt {attempt_id} not found.")
        self.attempt_id = attempt_id


class NotLive(QuizError):
    """A session was started outside the quiz's live window."""

    code = "not_live"


class DuplicateAttempt(QuizError):
    """The student already has an attempt for this quiz."""

    code = "duplicate_attempt"


class OutOfSequence(QuizError):
    """An answer targeted a question other than the one at the cursor."""

    code = "out_of_sequence"


class AlreadyTerminal(QuizError):
    """A mutation was attempted on a finished attempt."""

    code = "already_terminal"


class ResultNotReady(QuizError):
    """A score was requested for an attempt that is still in progress."""

    code = "result_not_ready"


class InvalidOption(QuizError):
    code = "invalid_option"


class QuizAlreadyPublished(QuizError):
    code = "already_published"


class ValidationError(QuizError):
    """A quiz failed the structural checks required for publishing."""

    code = "validation_error"

    def __init__(self, problems: list[str]) -> None:
        super().__init__("; ".join(problems) or "Quiz is invalid.")
        self.problems = list(problems)


class PersistenceError(QuizError):
    """The store failed while writing. Nothing was written."""

    code = "persistence_error"


class QuizImportError(QuizError):
    """A quiz text file could not be parsed."""

    code = "import_error"
