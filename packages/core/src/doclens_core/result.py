"""Tagged results returned by every host operation.

Components never let a remote failure escape as an exception: a host call
returns ``Ok(value)`` or ``Err(kind, detail)`` and the caller decides what
the failure means for its own state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar, Union

from github import GithubException, RateLimitExceededException

T = TypeVar("T")


class ErrorKind(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TRANSIENT = "transient"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T = None  # type: ignore[assignment]

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: str
    operation: str = ""
    status: int | None = None

    @property
    def ok(self) -> bool:
        return False

    def __str__(self) -> str:
        prefix = f"{self.operation}: " if self.operation else ""
        status = f" (HTTP {self.status})" if self.status else ""
        return f"{prefix}{self.kind.value}{status}: {self.detail}"


Result = Union[Ok[T], Err]


def _github_message(exc: GithubException) -> str:
    data = exc.data
    if isinstance(data, dict):
        message = data.get("message")
        errors = data.get("errors")
        if message and errors:
            return f"{message} {errors}"
        if message:
            return str(message)
    return str(data) if data else str(exc)


def classify_status(status: int | None) -> ErrorKind:
    if status in (401, 403):
        return ErrorKind.PERMISSION_DENIED
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status in (409, 422):
        return ErrorKind.CONFLICT
    if status == 429 or (status is not None and status >= 500):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNEXPECTED


def error_from_exception(exc: Exception, operation: str = "") -> Err:
    """Classify an exception raised by a remote call into an Err."""
    if isinstance(exc, RateLimitExceededException):
        return Err(ErrorKind.TRANSIENT, _github_message(exc), operation, exc.status)
    if isinstance(exc, GithubException):
        message = _github_message(exc)
        kind = classify_status(exc.status)
        # Secondary rate limits come back as 403 with an explanatory message.
        if kind is ErrorKind.PERMISSION_DENIED and "rate limit" in message.lower():
            kind = ErrorKind.TRANSIENT
        return Err(kind, message, operation, exc.status)
    if isinstance(exc, OSError):
        # requests' connection and timeout errors derive from OSError.
        return Err(ErrorKind.TRANSIENT, str(exc) or exc.__class__.__name__, operation)
    return Err(ErrorKind.UNEXPECTED, f"{exc.__class__.__name__}: {exc}", operation)
