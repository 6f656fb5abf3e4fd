"""
Commit request and commit status models.

CommitRequest is the payload submitted to finalize the booking held in
session state. CommitStatus is the tagged outcome of a commit or a status
check.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from nsk_booking.exceptions import ApiError


@dataclass(frozen=True)
class Comment:
    """Booking comment attached at commit time."""

    text: str
    type: str = "Default"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class HoldOptions:
    """Hold the booking unpaid until ``hold_date_time`` (ISO 8601)."""

    hold_date_time: str
    hold_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"holdDateTime": self.hold_date_time}
        if self.hold_type is not None:
            data["holdType"] = self.hold_type
        return data


@dataclass(frozen=True)
class CommitRequest:
    """
    Booking commit payload. Immutable once constructed.

    Attributes:
        comments: Comments added to the booking on commit
        hold: Optional hold options
        concurrent_merge: Let upstream merge changes made by other sessions
        received_by: Agent or channel recorded as receiving the booking
        restriction_override: Override booking restrictions (agent permission)
        notify_contacts: Send itinerary notifications to booking contacts
        currency_code: Booking currency (3-letter ISO code)
    """

    comments: Tuple[Comment, ...] = ()
    hold: Optional[HoldOptions] = None
    concurrent_merge: bool = False
    received_by: Optional[str] = None
    restriction_override: bool = False
    notify_contacts: bool = False
    currency_code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the upstream wire body, omitting unset optional fields."""
        data: Dict[str, Any] = {
            "concurrentMerge": self.concurrent_merge,
            "restrictionOverride": self.restriction_override,
            "notifyContacts": self.notify_contacts,
        }
        if self.comments:
            data["comments"] = [comment.to_dict() for comment in self.comments]
        if self.hold is not None:
            data["hold"] = self.hold.to_dict()
        if self.received_by is not None:
            data["receivedBy"] = self.received_by
        if self.currency_code is not None:
            data["currencyCode"] = self.currency_code
        return data


class CommitStatusKind(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class CommitStatus:
    """
    Tagged result of a commit or status check.

    Exactly one of the shapes is populated:
        pending   - no extra fields
        committed - record_locator and booking
        failed    - error
    """

    kind: CommitStatusKind
    record_locator: Optional[str] = None
    booking: Optional[Dict[str, Any]] = field(default=None, compare=False)
    error: Optional[ApiError] = field(default=None, compare=False)
    polls: int = field(default=0, compare=False)

    @classmethod
    def pending(cls, polls: int = 0) -> "CommitStatus":
        return cls(kind=CommitStatusKind.PENDING, polls=polls)

    @classmethod
    def committed(
        cls, record_locator: Optional[str], booking: Optional[Dict[str, Any]], polls: int = 0
    ) -> "CommitStatus":
        return cls(
            kind=CommitStatusKind.COMMITTED,
            record_locator=record_locator,
            booking=booking,
            polls=polls,
        )

    @classmethod
    def failed(cls, error: ApiError, polls: int = 0) -> "CommitStatus":
        return cls(kind=CommitStatusKind.FAILED, error=error, polls=polls)

    @property
    def is_pending(self) -> bool:
        return self.kind == CommitStatusKind.PENDING

    @property
    def is_committed(self) -> bool:
        return self.kind == CommitStatusKind.COMMITTED

    @property
    def is_failed(self) -> bool:
        return self.kind == CommitStatusKind.FAILED

    def raise_for_status(self) -> "CommitStatus":
        """Raise the carried error for failed statuses, otherwise return self."""
        if self.error is not None:
            raise self.error
        return self
