from __future__ import annotations


class StudyhallError(Exception):
    """Base class for errors raised by the quiz core."""


class QuizValidationError(StudyhallError, ValueError):
    """Rejected input: bad option index, unknown question, empty quiz, malformed blob."""


class InvalidTransitionError(StudyhallError, RuntimeError):
    """An operation was called in a state that does not allow it."""


class RecordError(StudyhallError):
    """The Progress Recorder could not store a finished attempt."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause


class SessionLimitError(StudyhallError):
    """No room for another live quiz session."""
