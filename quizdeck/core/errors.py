"""Error taxonomy for joining, reconnecting and syncing a live session."""

from __future__ import annotations


class QuizDeckError(Exception):
    """Base class for errors that carry a user-facing message."""

    default_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


class ValidationError(QuizDeckError):
    """Join code or display name missing; the user is re-prompted."""

    default_message = "Fill in the join code and your name."


class InvalidCodeError(QuizDeckError):
    """No session could be found for the entered code."""

    default_message = "Invalid join code."


class SessionEndedError(QuizDeckError):
    """The session exists but is no longer active."""

    default_message = "This session has already ended."


class ConnectivityError(QuizDeckError):
    """Transient failure talking to the shared store."""

    default_message = "Connection to the server was lost."


class StaleSessionError(QuizDeckError):
    """The session or the student's record vanished server-side."""

    default_message = "Your session is no longer available. Join again."
