"""Static metadata describing the classroom quiz service."""

APP_NAME = "Classroom Quiz"
APP_VERSION = "0.1.0"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "Classroom Quiz runs timed multiple-choice assessments for the school portal: "
    "teachers author and schedule quizzes, students take them once, and results "
    "are ranked for the class."
)
