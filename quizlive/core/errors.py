"""Exceptions raised by the quiz platform services."""

from __future__ import annotations


class QuizLiveError(Exception):
    """Base class for errors that callers are expected to report to users."""


class QuizValidationError(QuizLiveError, ValueError):
    """Raised when submitted quiz data or an answer is malformed."""


class NotFoundError(QuizLiveError, LookupError):
    """Raised when a quiz, session or profile does not exist."""


class PermissionDeniedError(QuizLiveError):
    """Raised when the caller's role or ownership does not allow the action."""


class ConflictError(QuizLiveError, RuntimeError):
    """Raised when the requested transition does not fit the current state."""
