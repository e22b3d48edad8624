"""Exception types shared across Roll Call components."""

from __future__ import annotations

from typing import List, Optional


class RollCallError(Exception):
    """Base class for failures surfaced to callers with a readable message."""

    code = "ROLL_CALL_ERROR"

    def __init__(self, message: str, details: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = list(details or [])


class SourceUnavailable(RollCallError):
    """The backing sheet (or the data endpoint) could not be read."""

    code = "SOURCE_UNAVAILABLE"


class AuthorizationRequired(SourceUnavailable):
    """The data endpoint answered 403 and needs permissions configured."""

    code = "AUTHORIZATION_REQUIRED"


class DateNotFound(RollCallError):
    """No header column matches the requested date key."""

    code = "DATE_NOT_FOUND"

    def __init__(self, date: str) -> None:
        super().__init__(f"Date column not found: {date}")
        self.date = date


class WriteFailed(RollCallError):
    """The batch write call failed; no cells count as updated."""

    code = "WRITE_FAILED"


class AuthCheckFailed(RollCallError):
    """The whitelist could not be read and no cached copy exists."""

    code = "AUTH_CHECK_FAILED"


class Unauthorized(RollCallError):
    """The caller's email is not on the whitelist."""

    code = "UNAUTHORIZED"


class ValidationError(RollCallError):
    """A request payload is missing required fields."""

    code = "VALIDATION_ERROR"


class OperationInProgress(RollCallError):
    """A load or save is already pending on the same view model."""

    code = "OPERATION_IN_PROGRESS"


__all__ = [
    "RollCallError",
    "SourceUnavailable",
    "AuthorizationRequired",
    "DateNotFound",
    "WriteFailed",
    "AuthCheckFailed",
    "Unauthorized",
    "ValidationError",
    "OperationInProgress",
]
