"""Domain models for quizzes, attempts, and results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class PublishState(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class ReleaseKind(str, Enum):
    IMMEDIATE = "immediate"
    SCHEDULED = "scheduled"


class QuizStatus(str, Enum):
    """Status of a quiz as seen by a client. Derived, never stored."""

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    LIVE = "live"
    EXPIRED = "expired"
    COMPLETED = "completed"  # per-student overlay only


class AttemptState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptState.SUBMITTED, AttemptState.EXPIRED)


class TerminationReason(str, Enum):
    MANUAL = "manual"
    TIMEOUT = "timeout"
    FORCED = "forced"


@dataclass(slots=True)
class Option:
    """One selectable answer of a question."""

    id: int
    text: str
    is_correct: bool = False


@dataclass(slots=True)
class Question:
    """Multiple-choice question with a single correct option."""

    id: int
    text: str
    options: list[Option] = field(default_factory=list)

    @property
    def correct_option_id(self) -> int | None:
        correct = [option.id for option in self.options if option.is_correct]
        if len(correct) != 1:
            return None
        return correct[0]

    def has_option(self, option_id: int) -> bool:
        return any(option.id == option_id for option in self.options)


@dataclass(slots=True, frozen=True)
class ReleasePolicy:
    """When a published quiz becomes visible to students."""

    kind: ReleaseKind = ReleaseKind.IMMEDIATE
    release_at: datetime | None = None

    @classmethod
    def immediate(cls) -> "ReleasePolicy":
        return cls(kind=ReleaseKind.IMMEDIATE)

    @classmethod
    def scheduled_at(cls, release_at: datetime) -> "ReleasePolicy":
        return cls(kind=ReleaseKind.SCHEDULED, release_at=release_at)


@dataclass(slots=True)
class QuizDefinition:
    """Authored quiz content plus its timing policy."""

    id: str
    title: str
    class_name: str
    subject: str
    teacher_id: str
    questions: list[Question] = field(default_factory=list)
    duration_minutes: int = 0
    passing_score_percent: float = 0.0
    release_policy: ReleasePolicy = field(default_factory=ReleasePolicy.immediate)
    deadline: datetime | None = None
    publish_state: PublishState = PublishState.DRAFT
    created_at: datetime | None = None
    published_at: datetime | None = None

    @property
    def is_published(self) -> bool:
        return self.publish_state is PublishState.PUBLISHED

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    def question_at(self, index: int) -> Question | None:
        if 0 <= index < len(self.questions):
            return self.questions[index]
        return None


@dataclass(slots=True, frozen=True)
class LockedAnswer:
    """An answer that has been committed and can no longer change."""

    question_id: int
    option_id: int
    answered_at: datetime


@dataclass(slots=True, frozen=True)
class QuestionOutcome:
    question_id: int
    chosen_option_id: int | None
    correct_option_id: int | None
    is_correct: bool


@dataclass(slots=True, frozen=True)
class AttemptResult:
    """Score of one terminal attempt."""

    attempt_id: str
    quiz_id: str
    student_id: str
    score: int
    total_questions: int
    percent: float
    passed: bool
    submitted_at: datetime
    termination_reason: TerminationReason
    late: bool = False
    outcomes: tuple[QuestionOutcome, ...] = ()


@dataclass(slots=True)
class Attempt:
    """One student's run through a quiz."""

    id: str
    quiz_id: str
    student_id: str
    started_at: datetime
    closes_at: datetime
    state: AttemptState = AttemptState.IN_PROGRESS
    submitted_at: datetime | None = None
    termination_reason: TerminationReason | None = None
    locked_answers: tuple[LockedAnswer, ...] = ()
    cursor: int = 0
    result: AttemptResult | None = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal


@dataclass(slots=True, frozen=True)
class RankedResult:
    rank: int
    student_id: str
    attempt_id: str
    score: int
    percent: float
    passed: bool
    submitted_at: datetime
    termination_reason: TerminationReason


@dataclass(slots=True, frozen=True)
class ResultSummary:
    """Class-wide view over every terminal attempt of a quiz."""

    quiz_id: str
    total_questions: int
    attempt_count: int
    class_average: float
    pass_count: int
    pass_rate: float
    highest_percent: float | None
    lowest_percent: float | None
    rankings: tuple[RankedResult, ...] = ()


@dataclass(slots=True, frozen=True)
class QuizListing:
    """A quiz together with the status a specific student sees."""

    quiz: QuizDefinition
    effective_status: QuizStatus
    attempt: Attempt | None = None


@dataclass(slots=True, frozen=True)
class LiveProgress:
    """Teacher-side snapshot of one student's attempt."""

    student_id: str
    attempt_id: str
    state: AttemptState
    answered: int
    total_questions: int
    seconds_remaining: int
    score: int | None = None
