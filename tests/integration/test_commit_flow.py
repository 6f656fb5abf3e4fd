"""
Integration tests for the commit flow.

Exercises orchestrator -> booking endpoints -> request executor -> error
translator end to end. Only the HTTP transport (requests.Session) is
mocked; polling waits are recorded instead of slept.
"""

import json
from unittest.mock import Mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from nsk_booking import (
    BackoffPolicy,
    BookingApi,
    CommitOrchestrator,
    CommitRequest,
    CommitState,
    Comment,
    HoldOptions,
    RequestExecutor,
    TransientError,
    ValidationError,
)

BASE_URL = "https://jmtest.booking.jambojet.com/jm/dotrez/"
TOKEN = "session-token-abcdef0123"


def _response(status, payload=None, headers=None):
    response = requests.Response()
    response.status_code = status
    response.headers = CaseInsensitiveDict(headers or {})
    response._content = json.dumps(payload).encode("utf-8") if payload is not None else b""
    response.encoding = "utf-8"
    return response


@pytest.fixture
def http():
    return Mock(spec=requests.Session)


@pytest.fixture
def waits():
    return []


@pytest.fixture
def orchestrator(http, waits):
    def record_wait(delay, cancel_event=None):
        waits.append(delay)
        return False

    executor = RequestExecutor(BASE_URL, subscription_key="sub-key-123456", session=http)
    return CommitOrchestrator(
        BookingApi(executor),
        backoff=BackoffPolicy(jitter=False),
        waiter=record_wait,
    )


def test_async_commit_with_rate_limit_and_gateway_errors(orchestrator, http, waits):
    """202 submit, then 429 + 502 during polling, then committed."""
    http.request.side_effect = [
        _response(202),
        _response(202),
        _response(429, headers={"Retry-After": "3"}),
        _response(502, {"message": "Bad gateway"}),
        _response(200, {"data": {"booking": {"recordLocator": "ABC123", "journeys": []}}}),
    ]
    session = orchestrator.guard.open_session(TOKEN)
    request = CommitRequest(
        comments=(Comment("Paid by M-Pesa"),),
        hold=HoldOptions("2026-11-01T12:00:00Z"),
        received_by="web",
        currency_code="KES",
    )

    status = orchestrator.commit(session, request)

    assert status.is_committed
    assert status.record_locator == "ABC123"
    assert status.booking == {"recordLocator": "ABC123", "journeys": []}
    assert status.polls == 4
    assert session.commit_state == CommitState.COMMITTED
    assert waits == [0.5, 1.0, 3.0, 4.0]

    submit = http.request.call_args_list[0]
    assert submit.args[0] == "POST"
    assert submit.kwargs["headers"]["X-Request-ID"] == session.last_commit_request_id
    assert submit.kwargs["headers"]["Authorization"] == f"Bearer {TOKEN}"
    assert submit.kwargs["json"]["hold"] == {"holdDateTime": "2026-11-01T12:00:00Z"}

    polls = http.request.call_args_list[1:]
    assert all(call.args[0] == "GET" for call in polls)
    assert all(call.args[1].endswith("/api/nsk/v2/booking/status") for call in polls)


def test_invalid_commit_makes_no_http_call(orchestrator, http):
    session = orchestrator.guard.open_session(TOKEN)

    status = orchestrator.commit(session, CommitRequest(hold=HoldOptions("whenever")))

    assert isinstance(status.error, ValidationError)
    assert [v.field for v in status.error.violations] == ["hold.holdDateTime"]
    http.request.assert_not_called()


def test_upstream_validation_rejection(orchestrator, http):
    http.request.return_value = _response(
        400, {"errors": [{"code": "nsk:Booking:NoJourneys", "message": "Booking has no journeys"}]}
    )
    session = orchestrator.guard.open_session(TOKEN)

    status = orchestrator.commit(session, CommitRequest())

    with pytest.raises(ValidationError, match="Booking has no journeys"):
        status.raise_for_status()
    assert session.commit_state == CommitState.COMMIT_FAILED


def test_network_failure_on_submit_is_not_retried(orchestrator, http):
    http.request.side_effect = requests.ConnectionError("connection reset")
    session = orchestrator.guard.open_session(TOKEN)

    status = orchestrator.commit(session, CommitRequest())

    assert isinstance(status.error, TransientError)
    assert http.request.call_count == 1


def test_commit_then_update_then_retrieve(orchestrator, http):
    http.request.side_effect = [
        _response(201, {"data": {"recordLocator": "ABC123"}}),
        _response(200, {"data": {"recordLocator": "ABC123"}}),
        _response(200, {"data": {"recordLocator": "ABC123", "info": {"status": "Confirmed"}}}),
    ]
    session = orchestrator.guard.open_session(TOKEN)

    orchestrator.commit(session, CommitRequest())
    orchestrator.commit(session, CommitRequest(notify_contacts=True))
    booking = orchestrator.booking_api.get_by_record_locator(session, session.record_locator)

    methods = [call.args[0] for call in http.request.call_args_list]
    assert methods == ["POST", "PUT", "GET"]
    assert http.request.call_args_list[2].args[1].endswith("/api/nsk/v1/bookings/ABC123")
    assert booking.data["data"]["info"]["status"] == "Confirmed"
