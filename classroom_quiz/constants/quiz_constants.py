"""Quiz-related constants shared across the core and API layers."""

MIN_QUESTIONS: int = 2
MAX_QUESTIONS: int = 10
MIN_OPTIONS: int = 2
MAX_IMPORT_OPTIONS: int = 6

# Tolerance added to an attempt's window before a submission counts as late.
SUBMISSION_GRACE_SECONDS: int = 5
TIMEOUT_SWEEP_INTERVAL_SECONDS: float = 1.0

DEFAULT_DURATION_MINUTES: int = 30
DEFAULT_PASSING_SCORE_PERCENT: float = 40.0
