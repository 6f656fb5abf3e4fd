"""
Booking session domain model.

A BookingSession is the client-side handle for "the booking currently being
built" inside the upstream server-side session. It references the caller's
session token and tracks the commit state machine:

    BUILDING -> COMMIT_REQUESTED -> COMMIT_PENDING -> COMMITTED
                                 \\                \\-> COMMIT_FAILED
                                  \\-> COMMITTED | COMMIT_FAILED | BUILDING

COMMIT_FAILED may return to BUILDING when the caller retries after
correcting the booking. BUILDING, COMMIT_FAILED and COMMITTED may start a
new commit cycle. Transitions are applied by the session guard and its
leases; callers only read the state.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from nsk_booking.exceptions import InvalidTransitionError


class CommitState(str, Enum):
    """Commit lifecycle states of a booking session."""

    BUILDING = "building"
    COMMIT_REQUESTED = "commit_requested"
    COMMIT_PENDING = "commit_pending"
    COMMITTED = "committed"
    COMMIT_FAILED = "commit_failed"


ALLOWED_TRANSITIONS: Dict[CommitState, FrozenSet[CommitState]] = {
    CommitState.BUILDING: frozenset({CommitState.COMMIT_REQUESTED}),
    CommitState.COMMIT_REQUESTED: frozenset(
        {
            CommitState.COMMIT_PENDING,
            CommitState.COMMITTED,
            CommitState.COMMIT_FAILED,
            CommitState.BUILDING,
        }
    ),
    CommitState.COMMIT_PENDING: frozenset({CommitState.COMMITTED, CommitState.COMMIT_FAILED}),
    CommitState.COMMITTED: frozenset({CommitState.COMMIT_REQUESTED}),
    CommitState.COMMIT_FAILED: frozenset({CommitState.COMMIT_REQUESTED, CommitState.BUILDING}),
}

# States in which a commit is outstanding and no new commit may start
OUTSTANDING_STATES = frozenset({CommitState.COMMIT_REQUESTED, CommitState.COMMIT_PENDING})

# States from which a new commit cycle may begin
COMMITTABLE_STATES = frozenset(
    {CommitState.BUILDING, CommitState.COMMIT_FAILED, CommitState.COMMITTED}
)


@dataclass
class StateEntry:
    """Recorded history entry for a state change."""

    state: CommitState
    entered_at: datetime
    reason: Optional[str] = None


@dataclass
class BookingSession:
    """
    Client-side handle for a booking being built in server-side session state.

    Attributes:
        session_token: Opaque token owned by the caller's authentication layer
        commit_state: Current commit lifecycle state
        last_commit_request_id: Request id of the most recent commit submission
        record_locator: Record locator once the booking has been committed
        booking: Latest booking snapshot returned by upstream
        history: Ordered state changes
    """

    session_token: str
    commit_state: CommitState = CommitState.BUILDING
    last_commit_request_id: Optional[str] = None
    record_locator: Optional[str] = None
    booking: Optional[Dict[str, Any]] = None
    history: List[StateEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.session_token:
            raise ValueError("BookingSession requires a non-empty session token")
        if not self.history:
            self.history.append(StateEntry(self.commit_state, datetime.now(timezone.utc)))

    @property
    def commit_outstanding(self) -> bool:
        return self.commit_state in OUTSTANDING_STATES

    @property
    def is_terminal(self) -> bool:
        return self.commit_state in (CommitState.COMMITTED, CommitState.COMMIT_FAILED)

    def can_transition(self, target: CommitState) -> bool:
        return target in ALLOWED_TRANSITIONS[self.commit_state]

    def transition(self, target: CommitState, reason: Optional[str] = None) -> None:
        """
        Move to ``target``.

        Raises:
            InvalidTransitionError: If the transition is not in ALLOWED_TRANSITIONS
        """
        if not self.can_transition(target):
            allowed = ", ".join(sorted(s.value for s in ALLOWED_TRANSITIONS[self.commit_state]))
            raise InvalidTransitionError(
                f"Cannot move booking session from {self.commit_state.value} to "
                f"{target.value}. Allowed: {allowed}"
            )
        self.commit_state = target
        self.history.append(StateEntry(target, datetime.now(timezone.utc), reason))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commitState": self.commit_state.value,
            "lastCommitRequestId": self.last_commit_request_id,
            "recordLocator": self.record_locator,
        }
