"""Domain models - booking session and commit payloads."""

from .commit import Comment, CommitRequest, CommitStatus, CommitStatusKind, HoldOptions
from .session import BookingSession, CommitState

__all__ = [
    "BookingSession",
    "CommitState",
    "Comment",
    "CommitRequest",
    "CommitStatus",
    "CommitStatusKind",
    "HoldOptions",
]
