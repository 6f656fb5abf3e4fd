"""
Error translator.

Single funnel turning every failure the SDK can meet (validation results,
transport exceptions, non-2xx responses, unexpected exceptions) into the
ApiError taxonomy, so every call site surfaces the same shape.
"""

from typing import Any, Optional

import requests

from nsk_booking.exceptions import (
    ApiError,
    AuthenticationError,
    TransientError,
    ValidationError,
)
from nsk_booking.validation.result import ValidationResult, Violation

SNIPPET_LENGTH = 200

# requests exceptions worth retrying; anything else (bad URL, bad schema) is a caller bug
TRANSIENT_TRANSPORT_ERRORS = (
    requests.ConnectionError,
    requests.Timeout,
    requests.exceptions.ChunkedEncodingError,
)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except (TypeError, ValueError):
        return None


def _extract_message(response: requests.Response) -> Optional[str]:
    """Pull a human-readable message out of an upstream error body."""
    try:
        body: Any = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        if isinstance(body.get("message"), str) and body["message"].strip():
            return body["message"].strip()
        errors = body.get("errors")
        if isinstance(errors, list):
            for item in errors:
                if isinstance(item, dict) and item.get("message"):
                    return str(item["message"])
                if isinstance(item, str) and item.strip():
                    return item.strip()

    try:
        text = response.text
    except Exception:  # noqa: BLE001
        return None
    if isinstance(text, str) and text.strip():
        return text.strip()[:SNIPPET_LENGTH]
    return None


def _upstream_violations(response: requests.Response) -> list:
    try:
        body = response.json()
    except ValueError:
        return []
    if not isinstance(body, dict) or not isinstance(body.get("errors"), list):
        return []
    violations = []
    for item in body["errors"]:
        if isinstance(item, dict) and item.get("message"):
            violations.append(
                Violation(
                    field=str(item.get("field") or item.get("id") or ""),
                    rule=str(item.get("code") or "upstream"),
                    message=str(item["message"]),
                )
            )
    return violations


def _from_response(
    response: requests.Response,
    operation: Optional[str],
    cause: Optional[BaseException] = None,
) -> ApiError:
    status = response.status_code
    upstream_message = _extract_message(response)
    where = f" during {operation}" if operation else ""

    if status in (401, 403):
        return AuthenticationError(
            upstream_message or f"Authentication rejected{where} (HTTP {status})",
            http_status=status,
            cause=cause,
            operation=operation,
        )

    if status == 429:
        retry_after = _parse_retry_after(response.headers.get("Retry-After"))
        suffix = f" Retry after {retry_after:g} seconds." if retry_after is not None else ""
        return TransientError(
            f"Rate limit exceeded{where}.{suffix}",
            http_status=status,
            cause=cause,
            retry_after=retry_after,
            operation=operation,
        )

    if status == 408 or status >= 500:
        return TransientError(
            upstream_message or f"Upstream unavailable{where} (HTTP {status})",
            http_status=status,
            cause=cause,
            retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            operation=operation,
        )

    if status == 400:
        violations = _upstream_violations(response)
        if violations:
            return ValidationError(
                violations,
                message=upstream_message or f"Upstream rejected the request{where}",
                http_status=status,
                operation=operation,
            )

    return ApiError(
        upstream_message or f"API request failed{where} with status {status}",
        http_status=status,
        cause=cause,
        operation=operation,
    )


def translate(failure: Any, operation: Optional[str] = None) -> ApiError:
    """
    Map any failure to the ApiError taxonomy.

    Args:
        failure: An ApiError, invalid ValidationResult, non-2xx requests.Response,
            requests exception, or any other exception
        operation: SDK operation name recorded on the error

    Returns:
        ApiError subclass instance. Existing ApiErrors are returned unchanged.

    Raises:
        ValueError: If given a passing ValidationResult (there is nothing to translate)
    """
    if isinstance(failure, ApiError):
        if failure.operation is None:
            failure.operation = operation
        return failure

    if isinstance(failure, ValidationResult):
        if failure.valid:
            raise ValueError("Cannot translate a passing ValidationResult")
        return ValidationError(failure.violations, operation=operation)

    if isinstance(failure, requests.Response):
        return _from_response(failure, operation)

    if isinstance(failure, requests.HTTPError) and failure.response is not None:
        return _from_response(failure.response, operation, cause=failure)

    if isinstance(failure, TRANSIENT_TRANSPORT_ERRORS):
        kind = "timed out" if isinstance(failure, requests.Timeout) else "network failure"
        where = f" during {operation}" if operation else ""
        return TransientError(f"Request {kind}{where}: {failure}", cause=failure, operation=operation)

    if isinstance(failure, BaseException):
        return ApiError(str(failure) or type(failure).__name__, cause=failure, operation=operation)

    return ApiError(f"Unrecognized failure: {failure!r}", operation=operation)
