"""
Error taxonomy for the study engine.

Every failure the engine surfaces is a LexiflowError. Each class carries
the HTTP status the API maps it to and whether a caller may retry it.
"""

from __future__ import annotations


class LexiflowError(Exception):
    """Base class for all study engine errors."""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or "")
        self.message = message or (self.__class__.__doc__ or "").strip()


class UnauthenticatedError(LexiflowError):
    """No authenticated user is attached to the request."""

    status_code = 401


class NotFoundError(LexiflowError):
    """Referenced word, category or session does not exist."""

    status_code = 404


class ConflictError(LexiflowError):
    """A concurrent update won the race for the same record."""

    status_code = 409
    retryable = True


class SessionAlreadyOpenError(ConflictError):
    """The user already has an open study session."""

    retryable = False

    def __init__(self, message: str = "", session_id: str | None = None):
        super().__init__(message)
        self.session_id = session_id


class SessionClosedError(LexiflowError):
    """The study session has already been closed."""

    status_code = 409


class TransientStoreError(LexiflowError):
    """The progress store is temporarily unavailable."""

    status_code = 503
    retryable = True


class InvalidInputError(LexiflowError):
    """Request arguments failed validation."""

    status_code = 422
