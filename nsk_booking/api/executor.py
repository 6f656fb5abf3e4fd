"""
Request Executor

Sends one HTTP call to the NSK API (method, endpoint, JSON body, query
parameters) over a shared requests.Session, propagating the caller's session
token and the subscription key. Successful responses come back as
ApiResponse; everything else is funnelled through the error translator and
raised.

The executor does not manage credential lifecycle and does not retry:
retry policy belongs to the caller (the commit orchestrator retries status
polls, never commit submissions).
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from nsk_booking.api.translator import translate
from nsk_booking.utils.logger import get_logger, mask_token

logger = get_logger(__name__)

# Headers that must never reach the logs
SENSITIVE_HEADERS = frozenset({"authorization", "ocp-apim-subscription-key"})


@dataclass
class ApiResponse:
    """Parsed 2xx response."""

    status_code: int
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    request_id: Optional[str] = None
    elapsed_ms: float = 0.0

    @property
    def accepted(self) -> bool:
        """True for 202 Accepted (processing not finished)."""
        return self.status_code == 202


def redact_headers(headers: Dict[str, str]) -> Dict[str, str]:
    return {
        key: ("***REDACTED***" if key.lower() in SENSITIVE_HEADERS else value)
        for key, value in headers.items()
    }


class RequestExecutor:
    """
    Generic HTTP executor for NSK endpoints.

    Per-resource proxy methods (contacts, SSRs, seats, fees, ...) are thin
    wrappers over ``send``; the booking commit core uses the same path.
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        subscription_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        default_headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize the executor.

        Args:
            base_url: API root, e.g. "https://example.test/jm/dotrez/"
            subscription_key: Value for the Ocp-Apim-Subscription-Key header
            session: Shared requests.Session (default: creates new)
            timeout: Per-request timeout in seconds
            default_headers: Extra headers sent with every request
        """
        if not base_url:
            raise ValueError("RequestExecutor requires a base_url")
        self.base_url = base_url.rstrip("/")
        self.subscription_key = subscription_key
        self.session = session or requests.Session()
        self.timeout = timeout
        self.default_headers = dict(default_headers or {})

    def build_url(self, endpoint: str) -> str:
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    def build_headers(
        self,
        session_token: Optional[str] = None,
        extra: Optional[Dict[str, str]] = None,
    ) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.subscription_key:
            headers["Ocp-Apim-Subscription-Key"] = self.subscription_key
        headers.update(self.default_headers)
        if session_token:
            headers["Authorization"] = f"Bearer {session_token}"
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _parse_body(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def send(
        self,
        method: str,
        endpoint: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
        session_token: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        operation: Optional[str] = None,
    ) -> ApiResponse:
        """
        Send one request.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            endpoint: Path relative to base_url, e.g. "api/nsk/v3/booking"
            json: JSON body
            params: Query parameters
            session_token: Caller's session token, sent as a Bearer token
            headers: Extra headers for this request
            operation: Operation name used in logs and errors

        Returns:
            ApiResponse for any 2xx status

        Raises:
            ApiError: Translated failure for non-2xx statuses and transport errors
        """
        method = method.upper()
        operation = operation or f"{method} {endpoint}"
        url = self.build_url(endpoint)
        request_headers = self.build_headers(session_token, headers)
        context = {
            "method": method,
            "endpoint": endpoint,
            "session": mask_token(session_token),
        }

        logger.debug(
            "Sending API request",
            operation=operation,
            context={**context, "headers": redact_headers(request_headers)},
        )

        start_time = time.time()
        try:
            response = self.session.request(
                method,
                url,
                headers=request_headers,
                json=json,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            duration_ms = (time.time() - start_time) * 1000
            error = translate(e, operation=operation)
            logger.error(
                "API request failed before a response was received",
                operation=operation,
                context=context,
                error=str(e),
                duration_ms=duration_ms,
            )
            raise error from e

        duration_ms = (time.time() - start_time) * 1000
        status = response.status_code
        context["status"] = status

        if not 200 <= status < 300:
            error = translate(response, operation=operation)
            log = logger.warning if error.retryable else logger.error
            log(
                "API request returned an error status",
                operation=operation,
                context=context,
                error=error.message,
            )
            raise error

        response_headers = dict(response.headers or {})
        logger.info(
            "API request succeeded",
            operation=operation,
            context=context,
            duration_ms=duration_ms,
        )
        return ApiResponse(
            status_code=status,
            data=self._parse_body(response),
            headers=response_headers,
            request_id=response_headers.get("X-Request-ID"),
            elapsed_ms=duration_ms,
        )

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> ApiResponse:
        return self.send("GET", endpoint, params=params, **kwargs)

    def post(self, endpoint: str, json: Optional[Any] = None, **kwargs) -> ApiResponse:
        return self.send("POST", endpoint, json=json, **kwargs)

    def put(self, endpoint: str, json: Optional[Any] = None, **kwargs) -> ApiResponse:
        return self.send("PUT", endpoint, json=json, **kwargs)

    def patch(self, endpoint: str, json: Optional[Any] = None, **kwargs) -> ApiResponse:
        return self.send("PATCH", endpoint, json=json, **kwargs)

    def delete(self, endpoint: str, json: Optional[Any] = None, **kwargs) -> ApiResponse:
        return self.send("DELETE", endpoint, json=json, **kwargs)
