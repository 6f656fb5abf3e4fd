"""
Exception hierarchy for the booking SDK.

Every failure surfaced by the SDK is an ``ApiError`` carrying a ``kind``
so callers can branch on one attribute regardless of where the failure
originated (local validation, session guard, transport, upstream response).
"""

from enum import Enum
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from nsk_booking.validation.result import Violation


class ErrorKind(str, Enum):
    """Failure categories of the unified error type."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    API = "api"
    TRANSIENT = "transient"
    CANCELLED = "cancelled"


class ApiError(Exception):
    """
    Base exception for all SDK failures.

    Raised directly for upstream 4xx rejections (malformed, not found, etc.).
    These are terminal and never retried.

    Attributes:
        kind: Failure category
        http_status: Upstream HTTP status when the failure came from a response
        message: Human-readable message
        cause: Underlying exception, if any
        operation: Name of the SDK operation that failed
    """

    default_kind = ErrorKind.API

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        cause: Optional[BaseException] = None,
        kind: Optional[ErrorKind] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind or self.default_kind
        self.http_status = http_status
        self.message = message
        self.cause = cause
        self.operation = operation

    @property
    def retryable(self) -> bool:
        return self.kind == ErrorKind.TRANSIENT

    def to_dict(self) -> dict:
        data = {"kind": self.kind.value, "message": self.message}
        if self.http_status is not None:
            data["httpStatus"] = self.http_status
        if self.operation:
            data["operation"] = self.operation
        if self.cause is not None:
            data["cause"] = repr(self.cause)
        return data

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"http_status={self.http_status!r}, message={self.message!r})"
        )


class ValidationError(ApiError):
    """
    Raised when a payload fails local checks before any network call.

    Never retried. Always carries the full violation list.
    """

    default_kind = ErrorKind.VALIDATION

    def __init__(
        self,
        violations: List["Violation"],
        message: Optional[str] = None,
        http_status: Optional[int] = None,
        operation: Optional[str] = None,
    ) -> None:
        self.violations = list(violations)
        if message is None:
            fields = ", ".join(v.field for v in self.violations) or "payload"
            message = f"Validation failed ({len(self.violations)} violation(s)): {fields}"
        super().__init__(message, http_status=http_status, operation=operation)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["violations"] = [v.to_dict() for v in self.violations]
        return data


class ConflictError(ApiError):
    """
    Raised when a commit is requested while one is already outstanding
    for the same session token.
    """

    default_kind = ErrorKind.CONFLICT


class AuthenticationError(ApiError):
    """Raised when upstream rejects the session token or subscription key (401/403)."""


class TransientError(ApiError):
    """
    Raised for 5xx responses, rate limiting and network failures.

    The commit poll loop retries these with backoff; they only escalate
    after the retry budget is exhausted.
    """

    default_kind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        cause: Optional[BaseException] = None,
        retry_after: Optional[float] = None,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(message, http_status=http_status, cause=cause, operation=operation)
        self.retry_after = retry_after


class CancelledError(ApiError):
    """
    Raised when polling stops because of a local timeout or cancellation.

    Cancellation is local only: the session stays pending so a later
    status check can still resolve it.
    """

    default_kind = ErrorKind.CANCELLED


class InvalidTransitionError(Exception):
    """Raised when a booking session is moved along an illegal state transition."""

    pass
