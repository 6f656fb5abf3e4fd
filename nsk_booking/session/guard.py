"""
Session guard.

Client-side embodiment of the upstream rule "never call booking-mutating
endpoints concurrently with the same session token". Before a commit-class
operation the guard atomically checks the session's commit state and hands
out a lease; a second caller gets ConflictError immediately (no waiting,
no queueing).

The guard also keeps the registry guaranteeing exactly one BookingSession
per session token.
"""

import threading
import uuid
from typing import Any, Dict, Optional

from nsk_booking.domain.session import (
    COMMITTABLE_STATES,
    BookingSession,
    CommitState,
)
from nsk_booking.exceptions import ConflictError, InvalidTransitionError
from nsk_booking.utils.logger import get_logger, mask_token

logger = get_logger(__name__)


class CommitLease:
    """
    Exclusive right to drive one commit on a booking session.

    The lease ends when the outcome is recorded (``mark_committed``,
    ``mark_failed``), when it is released back to BUILDING (``release``),
    or when polling is abandoned while upstream is still processing
    (``detach``, the session stays COMMIT_PENDING).
    """

    def __init__(self, guard: "SessionGuard", session: BookingSession, request_id: str):
        self._guard = guard
        self.session = session
        self.request_id = request_id
        self.active = True

    def _apply(self, target: CommitState, reason: Optional[str], end: bool) -> None:
        with self._guard._lock:
            if not self.active:
                raise InvalidTransitionError(
                    f"Lease {self.request_id} is no longer active (state "
                    f"{self.session.commit_state.value})"
                )
            self.session.transition(target, reason)
            if end:
                self._end_locked()

    def _end_locked(self) -> None:
        self.active = False
        self._guard._leases.pop(self.session.session_token, None)

    def mark_pending(self, reason: Optional[str] = None) -> None:
        self._apply(CommitState.COMMIT_PENDING, reason or "accepted, processing", end=False)

    def mark_committed(
        self, record_locator: Optional[str], booking: Optional[Dict[str, Any]] = None
    ) -> None:
        with self._guard._lock:
            self._apply(CommitState.COMMITTED, "committed", end=True)
            if record_locator:
                self.session.record_locator = record_locator
            if booking is not None:
                self.session.booking = booking

    def mark_failed(self, reason: Optional[str] = None) -> None:
        self._apply(CommitState.COMMIT_FAILED, reason or "commit failed", end=True)

    def release(self, reason: Optional[str] = None) -> None:
        """Return a COMMIT_REQUESTED session to BUILDING without an outcome."""
        self._apply(CommitState.BUILDING, reason or "released", end=True)

    def detach(self) -> None:
        """Stop driving a pending commit; the session stays COMMIT_PENDING."""
        with self._guard._lock:
            if self.active:
                self._end_locked()

    def __enter__(self) -> "CommitLease":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.active:
            return
        if self.session.commit_state == CommitState.COMMIT_PENDING:
            self.detach()
        elif exc is not None:
            self.mark_failed(f"aborted: {exc}")
        else:
            self.release()


class SessionGuard:
    """
    Enforces at most one outstanding commit per session token.

    Thread-safe: the state check and the transition to COMMIT_REQUESTED
    happen under one lock, so two threads racing on one session produce
    exactly one lease.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._sessions: Dict[str, BookingSession] = {}
        self._leases: Dict[str, CommitLease] = {}

    def open_session(self, session_token: str) -> BookingSession:
        """Return the active BookingSession for ``session_token``, creating it if needed."""
        with self._lock:
            session = self._sessions.get(session_token)
            if session is None:
                session = BookingSession(session_token=session_token)
                self._sessions[session_token] = session
                logger.debug(
                    "Opened booking session",
                    operation="open_session",
                    context={"session": mask_token(session_token)},
                )
            return session

    def get_session(self, session_token: str) -> Optional[BookingSession]:
        with self._lock:
            return self._sessions.get(session_token)

    def close_session(self, session_token: str) -> None:
        """
        Discard the session for ``session_token``.

        Raises:
            ConflictError: If a commit is still outstanding
        """
        with self._lock:
            session = self._sessions.get(session_token)
            if session is None:
                return
            if session.commit_outstanding or session_token in self._leases:
                raise ConflictError(
                    "Cannot close a booking session while a commit is outstanding",
                    operation="close_session",
                )
            del self._sessions[session_token]

    def _register_locked(self, session: BookingSession) -> None:
        existing = self._sessions.get(session.session_token)
        if existing is None:
            self._sessions[session.session_token] = session
        elif existing is not session:
            raise ConflictError(
                "Another booking session is already active for this session token",
                operation="begin_commit",
            )

    def begin_commit(self, session: BookingSession) -> CommitLease:
        """
        Acquire the commit lease for ``session``.

        Moves the session to COMMIT_REQUESTED.

        Raises:
            ConflictError: If a commit is already outstanding for the session token
        """
        with self._lock:
            self._register_locked(session)
            token = session.session_token
            if token in self._leases or session.commit_state not in COMMITTABLE_STATES:
                logger.warning(
                    "Rejected concurrent commit",
                    operation="begin_commit",
                    context={
                        "session": mask_token(token),
                        "state": session.commit_state.value,
                    },
                )
                raise ConflictError(
                    f"A commit is already outstanding for this session "
                    f"(state {session.commit_state.value})",
                    operation="begin_commit",
                )

            request_id = uuid.uuid4().hex
            session.transition(CommitState.COMMIT_REQUESTED, "commit requested")
            session.last_commit_request_id = request_id
            lease = CommitLease(self, session, request_id)
            self._leases[token] = lease
            return lease

    def resume_pending(self, session: BookingSession) -> CommitLease:
        """
        Acquire a lease to keep polling a commit left in COMMIT_PENDING.

        Raises:
            ConflictError: If another caller is already driving the commit
            InvalidTransitionError: If the session has no pending commit
        """
        with self._lock:
            self._register_locked(session)
            token = session.session_token
            if token in self._leases:
                raise ConflictError(
                    "The pending commit is already being resolved by another caller",
                    operation="resume_commit",
                )
            if session.commit_state != CommitState.COMMIT_PENDING:
                raise InvalidTransitionError(
                    f"No pending commit to resume (state {session.commit_state.value})"
                )
            lease = CommitLease(self, session, session.last_commit_request_id or uuid.uuid4().hex)
            self._leases[token] = lease
            return lease

    def is_locked(self, session_token: str) -> bool:
        with self._lock:
            return session_token in self._leases
