"""
Unit tests for RequestExecutor and BookingApi.

The shared requests.Session is mocked; assertions cover the wire shape of
each call (URL, headers, body) and how failures surface.
"""

import json
from unittest.mock import Mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from nsk_booking.api import ApiResponse, BookingApi, RequestExecutor
from nsk_booking.api.booking import extract_booking, extract_record_locator
from nsk_booking.api.executor import redact_headers
from nsk_booking.domain import BookingSession
from nsk_booking.exceptions import (
    ApiError,
    AuthenticationError,
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
def executor(http):
    return RequestExecutor(BASE_URL, subscription_key="sub-key-123456", session=http, timeout=12)


class TestRequestExecutor:
    def test_send_builds_request(self, executor, http):
        http.request.return_value = _response(200, {"data": {"ok": True}}, {"X-Request-ID": "r-1"})

        response = executor.send(
            "post",
            "/api/nsk/v3/booking",
            json={"receivedBy": "web"},
            params={"q": 1},
            session_token=TOKEN,
        )

        args, kwargs = http.request.call_args
        assert args == ("POST", "https://jmtest.booking.jambojet.com/jm/dotrez/api/nsk/v3/booking")
        assert kwargs["json"] == {"receivedBy": "web"}
        assert kwargs["params"] == {"q": 1}
        assert kwargs["timeout"] == 12
        assert kwargs["headers"]["Authorization"] == f"Bearer {TOKEN}"
        assert kwargs["headers"]["Ocp-Apim-Subscription-Key"] == "sub-key-123456"
        assert kwargs["headers"]["Content-Type"] == "application/json"

        assert isinstance(response, ApiResponse)
        assert response.status_code == 200
        assert response.data == {"data": {"ok": True}}
        assert response.request_id == "r-1"
        assert response.accepted is False

    def test_no_authorization_without_token(self, executor, http):
        http.request.return_value = _response(200, {})

        executor.get("api/nsk/v1/resources")

        headers = http.request.call_args.kwargs["headers"]
        assert "Authorization" not in headers

    def test_extra_headers_merged(self, http):
        executor = RequestExecutor(BASE_URL, session=http, default_headers={"X-Channel": "web"})
        http.request.return_value = _response(200, {})

        executor.put("api/nsk/v3/booking", json={}, headers={"X-Request-ID": "abc"})

        headers = http.request.call_args.kwargs["headers"]
        assert headers["X-Channel"] == "web"
        assert headers["X-Request-ID"] == "abc"
        assert "Ocp-Apim-Subscription-Key" not in headers

    def test_accepted_response_with_empty_body(self, executor, http):
        http.request.return_value = _response(202)

        response = executor.get("api/nsk/v2/booking/status", session_token=TOKEN)

        assert response.accepted is True
        assert response.data is None

    def test_non_json_body_kept_as_text(self, executor, http):
        raw = requests.Response()
        raw.status_code = 200
        raw.headers = CaseInsensitiveDict()
        raw._content = b"OK"
        raw.encoding = "utf-8"
        http.request.return_value = raw

        assert executor.get("ping").data == "OK"

    @pytest.mark.parametrize(
        "status,payload,expected",
        [
            (401, {"message": "Token expired"}, AuthenticationError),
            (503, None, TransientError),
            (400, {"errors": [{"code": "x", "message": "bad"}]}, ValidationError),
            (404, {"message": "not found"}, ApiError),
        ],
    )
    def test_error_statuses_raise_translated(self, executor, http, status, payload, expected):
        http.request.return_value = _response(status, payload)

        with pytest.raises(expected) as exc_info:
            executor.get("api/nsk/v1/booking", session_token=TOKEN, operation="get_current_booking")

        assert exc_info.value.http_status == status
        assert exc_info.value.operation == "get_current_booking"

    def test_transport_error_raises_transient(self, executor, http):
        http.request.side_effect = requests.ConnectionError("connection reset")

        with pytest.raises(TransientError) as exc_info:
            executor.get("api/nsk/v2/booking/status")

        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    def test_requires_base_url(self):
        with pytest.raises(ValueError):
            RequestExecutor("")

    def test_redact_headers(self):
        redacted = redact_headers(
            {"Authorization": "Bearer secret", "ocp-apim-subscription-key": "k", "Accept": "x"}
        )

        assert redacted == {
            "Authorization": "***REDACTED***",
            "ocp-apim-subscription-key": "***REDACTED***",
            "Accept": "x",
        }


class TestBookingApi:
    @pytest.fixture
    def api(self, executor):
        return BookingApi(executor)

    @pytest.fixture
    def session(self):
        return BookingSession(session_token=TOKEN)

    def test_submit_commit_create(self, api, http, session):
        http.request.return_value = _response(201, {"data": {"recordLocator": "ABC123"}})

        api.submit_commit(session, {"receivedBy": "web"}, "req-1")

        args, kwargs = http.request.call_args
        assert args[0] == "POST"
        assert args[1].endswith("/api/nsk/v3/booking")
        assert kwargs["headers"]["X-Request-ID"] == "req-1"
        assert kwargs["json"] == {"receivedBy": "web"}

    def test_submit_commit_update_uses_put(self, api, http, session):
        http.request.return_value = _response(200, {})

        api.submit_commit(session, {}, "req-2", update=True)

        assert http.request.call_args.args[0] == "PUT"

    def test_status_and_current_booking_endpoints(self, api, http, session):
        http.request.return_value = _response(200, {})

        api.get_commit_status(session)
        assert http.request.call_args.args[1].endswith("/api/nsk/v2/booking/status")

        api.get_current_booking(session)
        assert http.request.call_args.args[1].endswith("/api/nsk/v1/booking")

    def test_get_by_record_locator(self, api, http, session):
        http.request.return_value = _response(200, {"data": {"recordLocator": "ABC123"}})

        response = api.get_by_record_locator(session, "ABC123")

        assert http.request.call_args.args[1].endswith("/api/nsk/v1/bookings/ABC123")
        assert extract_record_locator(response.data) == "ABC123"

    @pytest.mark.parametrize("locator", ["", "abc123", "ABC12", "ABC1234"])
    def test_malformed_record_locator_never_sent(self, api, http, session, locator):
        with pytest.raises(ValidationError):
            api.get_by_record_locator(session, locator)

        http.request.assert_not_called()


class TestResponseExtraction:
    @pytest.mark.parametrize(
        "body,expected",
        [
            ({"recordLocator": "ABC123"}, "ABC123"),
            ({"data": {"recordLocator": " XYZ789 "}}, "XYZ789"),
            ({"data": {"booking": {"recordLocator": "QWE456"}}}, "QWE456"),
            ({"data": {"recordLocator": ""}}, None),
            ("ABC123", None),
            (None, None),
        ],
    )
    def test_extract_record_locator(self, body, expected):
        assert extract_record_locator(body) == expected

    def test_extract_booking(self):
        booking = {"recordLocator": "ABC123", "journeys": []}

        assert extract_booking({"data": {"booking": booking}}) == booking
        assert extract_booking({"data": booking}) == booking
        assert extract_booking({"data": []}) is None
