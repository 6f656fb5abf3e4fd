"""
Booking endpoints used by the commit core.

NSK uses a stateful booking approach: the booking is built in server-side
session state, committed, then retrieved by record locator.

Endpoints:
    - POST /api/nsk/v3/booking - Commit a new booking from session state
    - PUT /api/nsk/v3/booking - Commit changes to a booking loaded in state
    - GET /api/nsk/v2/booking/status - Commit status (202 while processing)
    - GET /api/nsk/v1/booking - Booking currently held in session state
    - GET /api/nsk/v1/bookings/{recordLocator} - Committed booking (stateless)
"""

from typing import Any, Dict, Optional

from nsk_booking.api.executor import ApiResponse, RequestExecutor
from nsk_booking.api.translator import translate
from nsk_booking.domain.session import BookingSession
from nsk_booking.validation.rules import Rule, Ruleset
from nsk_booking.validation.validator import validate

COMMIT_ENDPOINT = "api/nsk/v3/booking"
COMMIT_STATUS_ENDPOINT = "api/nsk/v2/booking/status"
CURRENT_BOOKING_ENDPOINT = "api/nsk/v1/booking"
BOOKINGS_ENDPOINT = "api/nsk/v1/bookings"

REQUEST_ID_HEADER = "X-Request-ID"

RECORD_LOCATOR_RULESET = Ruleset(
    name="record_locator",
    rules=(
        Rule("recordLocator", "required"),
        Rule("recordLocator", "format", {"format": "record_locator"}),
    ),
)


def extract_record_locator(body: Any) -> Optional[str]:
    """
    Find the record locator in a booking response body.

    Upstream wraps payloads in ``data``; the locator sits either there or
    at the top level, possibly nested under ``booking``.
    """
    if not isinstance(body, dict):
        return None
    candidates = [body]
    if isinstance(body.get("data"), dict):
        candidates.append(body["data"])
    for candidate in list(candidates):
        if isinstance(candidate.get("booking"), dict):
            candidates.append(candidate["booking"])
    for candidate in candidates:
        locator = candidate.get("recordLocator")
        if isinstance(locator, str) and locator.strip():
            return locator.strip()
    return None


def extract_booking(body: Any) -> Optional[Dict[str, Any]]:
    """Return the booking snapshot from a response body."""
    if not isinstance(body, dict):
        return None
    data = body.get("data", body)
    if isinstance(data, dict) and isinstance(data.get("booking"), dict):
        return data["booking"]
    return data if isinstance(data, dict) else None


class BookingApi:
    """Booking commit and status calls over the shared request executor."""

    def __init__(self, executor: RequestExecutor):
        self.executor = executor

    def submit_commit(
        self,
        session: BookingSession,
        body: Dict[str, Any],
        request_id: str,
        update: bool = False,
    ) -> ApiResponse:
        """
        Submit a commit for the booking held in session state.

        Args:
            session: Booking session (provides the session token)
            body: Commit request wire body
            request_id: Client request id sent as X-Request-ID
            update: PUT (commit changes to an existing booking) instead of POST
        """
        method = "PUT" if update else "POST"
        return self.executor.send(
            method,
            COMMIT_ENDPOINT,
            json=body,
            session_token=session.session_token,
            headers={REQUEST_ID_HEADER: request_id},
            operation="commit_update" if update else "commit_create",
        )

    def get_commit_status(self, session: BookingSession) -> ApiResponse:
        return self.executor.get(
            COMMIT_STATUS_ENDPOINT,
            session_token=session.session_token,
            operation="commit_status",
        )

    def get_current_booking(self, session: BookingSession) -> ApiResponse:
        return self.executor.get(
            CURRENT_BOOKING_ENDPOINT,
            session_token=session.session_token,
            operation="get_current_booking",
        )

    def get_by_record_locator(self, session: BookingSession, record_locator: str) -> ApiResponse:
        """
        Retrieve a committed booking.

        Raises:
            ValidationError: If the record locator is malformed (no request is sent)
        """
        result = validate({"recordLocator": record_locator}, RECORD_LOCATOR_RULESET)
        if not result.valid:
            raise translate(result, operation="get_booking_by_record_locator")
        return self.executor.get(
            f"{BOOKINGS_ENDPOINT}/{record_locator}",
            session_token=session.session_token,
            operation="get_booking_by_record_locator",
        )
