"""Session module - per-token commit serialization."""

from .guard import CommitLease, SessionGuard

__all__ = ["CommitLease", "SessionGuard"]
