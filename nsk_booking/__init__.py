"""
NSK booking session SDK core.

Builds on a server-side booking session: validates commit requests locally,
serializes commits per session token, submits the commit and resolves
asynchronous (202) commits by polling the booking status endpoint.
"""

from nsk_booking.api import ApiResponse, BookingApi, RequestExecutor, translate
from nsk_booking.commit import BackoffPolicy, CommitOrchestrator
from nsk_booking.domain import (
    BookingSession,
    Comment,
    CommitRequest,
    CommitState,
    CommitStatus,
    CommitStatusKind,
    HoldOptions,
)
from nsk_booking.exceptions import (
    ApiError,
    AuthenticationError,
    CancelledError,
    ConflictError,
    ErrorKind,
    InvalidTransitionError,
    TransientError,
    ValidationError,
)
from nsk_booking.session import CommitLease, SessionGuard
from nsk_booking.utils.logger import enable_console_logging
from nsk_booking.validation import Rule, Ruleset, ValidationResult, Violation, validate

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "ApiResponse",
    "AuthenticationError",
    "BackoffPolicy",
    "BookingApi",
    "BookingSession",
    "CancelledError",
    "Comment",
    "CommitLease",
    "CommitOrchestrator",
    "CommitRequest",
    "CommitState",
    "CommitStatus",
    "CommitStatusKind",
    "ConflictError",
    "ErrorKind",
    "HoldOptions",
    "InvalidTransitionError",
    "RequestExecutor",
    "Rule",
    "Ruleset",
    "SessionGuard",
    "TransientError",
    "ValidationError",
    "ValidationResult",
    "Violation",
    "enable_console_logging",
    "translate",
    "validate",
]
