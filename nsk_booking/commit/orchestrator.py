"""
Commit Orchestrator

Drives the booking commit state machine:

1. Acquire the commit lease from the session guard (ConflictError if one
   is outstanding).
2. Validate the commit request locally; violations fail the commit with
   no network call.
3. Submit the commit. 200/201 with a record locator completes
   synchronously; 202 (or a 2xx without a locator) means upstream is still
   processing (payment capture, ticketing).
4. Poll the commit status with exponential backoff until a terminal status,
   the caller's timeout, or cancellation. Transient poll failures are
   retried within a bounded budget; 4xx responses are terminal.

Cancellation is local: the session stays COMMIT_PENDING and ``resume`` or
``check_status`` can resolve it later.
"""

import random
import threading
import time
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Union

from nsk_booking.api.booking import BookingApi, extract_booking, extract_record_locator
from nsk_booking.api.executor import ApiResponse
from nsk_booking.api.translator import translate
from nsk_booking.commit.backoff import BackoffPolicy, wait_for_cancel
from nsk_booking.domain.commit import CommitRequest, CommitStatus
from nsk_booking.domain.session import BookingSession, CommitState
from nsk_booking.exceptions import ApiError, CancelledError, TransientError
from nsk_booking.session.guard import CommitLease, SessionGuard
from nsk_booking.utils.logger import get_logger, log_operation, mask_token
from nsk_booking.validation.rules import DEFAULT_COMMIT_RULESET, Ruleset
from nsk_booking.validation.validator import validate

logger = get_logger(__name__)

# Status values upstream uses in a 200 status body to report a failed commit
FAILED_COMMIT_STATUSES = frozenset({"failed", "error", "rejected", "declined"})

Waiter = Callable[[float, Optional[threading.Event]], bool]


def commit_failure_message(body: Any) -> Optional[str]:
    """Return a failure message when a status body reports a failed commit."""
    if not isinstance(body, Mapping):
        return None
    data = body.get("data", body)
    if not isinstance(data, Mapping):
        return None
    for key in ("commitStatus", "status"):
        value = data.get(key)
        if isinstance(value, str) and value.strip().lower() in FAILED_COMMIT_STATUSES:
            reason = data.get("message") or data.get("reason") or value
            return f"Upstream reported commit {value.strip().lower()}: {reason}"
    return None


class CommitOrchestrator:
    """
    Commits booking sessions and resolves asynchronous commits.

    Example:
        orchestrator = CommitOrchestrator(BookingApi(executor))
        session = orchestrator.guard.open_session(token)
        status = orchestrator.commit(session, CommitRequest(received_by="web"))
        status.raise_for_status()
    """

    DEFAULT_TIMEOUT = 120.0

    def __init__(
        self,
        booking_api: BookingApi,
        guard: Optional[SessionGuard] = None,
        ruleset: Ruleset = DEFAULT_COMMIT_RULESET,
        backoff: Optional[BackoffPolicy] = None,
        default_timeout: Optional[float] = DEFAULT_TIMEOUT,
        waiter: Waiter = wait_for_cancel,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            booking_api: Booking endpoints over the request executor
            guard: Session guard shared by everything committing these sessions
            ruleset: Validation rules applied to commit requests
            backoff: Poll backoff policy
            default_timeout: Poll timeout in seconds when the caller passes none
                (None means poll until terminal or cancelled)
            waiter: Suspends between polls, returns True when cancelled
            clock: Monotonic clock in seconds
            rng: Random source for backoff jitter
        """
        self.booking_api = booking_api
        self.guard = guard or SessionGuard()
        self.ruleset = ruleset
        self.backoff = backoff or BackoffPolicy()
        self.default_timeout = default_timeout
        self._wait = waiter
        self._clock = clock
        self._rng = rng

    @log_operation("commit")
    def commit(
        self,
        session: BookingSession,
        request: Union[CommitRequest, Dict[str, Any]],
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CommitStatus:
        """
        Commit the booking held in ``session``.

        Args:
            session: Booking session to commit
            request: Commit request (or its wire body)
            timeout: Seconds to keep polling an asynchronous commit
            cancel_event: Set from another thread to stop polling early

        Returns:
            CommitStatus: committed, or failed with the translated error
            (ValidationError, ApiError, TransientError, CancelledError)

        Raises:
            ConflictError: If a commit is already outstanding for the session
        """
        lease = self.guard.begin_commit(session)
        context = {"session": mask_token(session.session_token), "request_id": lease.request_id}

        with lease:
            body = request.to_dict() if isinstance(request, CommitRequest) else dict(request)

            result = validate(body, self.ruleset)
            if not result.valid:
                error = translate(result, operation="commit")
                logger.warning(
                    "Commit request failed local validation",
                    operation="commit",
                    context={**context, "violations": len(result.violations)},
                    error=error.message,
                )
                lease.mark_failed("validation failed")
                return CommitStatus.failed(error)

            update = session.record_locator is not None
            try:
                response = self.booking_api.submit_commit(
                    session, body, lease.request_id, update=update
                )
            except ApiError as e:
                # Submissions are never retried
                logger.error(
                    "Commit submission failed",
                    operation="commit",
                    context={**context, "status": e.http_status},
                    error=e.message,
                )
                lease.mark_failed(f"submit failed: {e.kind.value}")
                return CommitStatus.failed(e)

            record_locator = extract_record_locator(response.data)
            if not response.accepted and record_locator:
                booking = extract_booking(response.data)
                lease.mark_committed(record_locator, booking)
                logger.info(
                    "Commit completed synchronously",
                    operation="commit",
                    context={**context, "record_locator": record_locator},
                )
                return CommitStatus.committed(record_locator, booking)

            lease.mark_pending()
            logger.info(
                "Commit accepted, polling for completion",
                operation="commit",
                context={**context, "status": response.status_code},
            )
            return self._poll(lease, timeout, cancel_event)

    @log_operation("resume_commit")
    def resume(
        self,
        session: BookingSession,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CommitStatus:
        """
        Keep polling a commit left in COMMIT_PENDING (e.g. after a timeout).

        Raises:
            ConflictError: If another caller is already polling this session
            InvalidTransitionError: If the session has no pending commit
        """
        lease = self.guard.resume_pending(session)
        with lease:
            return self._poll(lease, timeout, cancel_event)

    @log_operation("check_status")
    def check_status(self, session: BookingSession) -> CommitStatus:
        """
        Single status check without polling.

        A committed session reports its stored outcome without a request.
        A pending session issues one status request and records a terminal
        result; a 202 or a transient failure leaves it pending.

        Raises:
            ConflictError: If another caller is already polling this session
            InvalidTransitionError: If the session is neither pending nor committed
        """
        if session.commit_state == CommitState.COMMITTED:
            return CommitStatus.committed(session.record_locator, session.booking)

        lease = self.guard.resume_pending(session)
        with lease:
            try:
                response = self.booking_api.get_commit_status(session)
            except ApiError as e:
                if not e.retryable:
                    lease.mark_failed(f"status check failed: {e.kind.value}")
                return CommitStatus.failed(e, polls=1)

            status = self._interpret_status(lease, response, polls=1)
            return status or CommitStatus.pending(polls=1)

    def _interpret_status(
        self, lease: CommitLease, response: ApiResponse, polls: int
    ) -> Optional[CommitStatus]:
        """Record a terminal status response on the session; None while still processing."""
        session = lease.session
        if response.accepted:
            return None

        failure = commit_failure_message(response.data)
        if failure:
            error = ApiError(failure, http_status=response.status_code, operation="commit_status")
            lease.mark_failed("upstream reported failure")
            logger.error(
                "Upstream reported commit failure",
                operation="commit_status",
                context={"session": mask_token(session.session_token), "polls": polls},
                error=failure,
            )
            return CommitStatus.failed(error, polls=polls)

        record_locator = extract_record_locator(response.data) or session.record_locator
        booking = extract_booking(response.data)
        lease.mark_committed(record_locator, booking)
        logger.info(
            "Commit completed",
            operation="commit_status",
            context={
                "session": mask_token(session.session_token),
                "record_locator": record_locator,
                "polls": polls,
            },
        )
        return CommitStatus.committed(record_locator, booking, polls=polls)

    def _cancelled(self, lease: CommitLease, polls: int, reason: str) -> CommitStatus:
        lease.detach()
        logger.warning(
            f"Stopped polling commit status ({reason}); commit left pending",
            operation="commit_status",
            context={"session": mask_token(lease.session.session_token), "polls": polls},
        )
        error = CancelledError(
            f"Commit still processing upstream; polling stopped ({reason}) after {polls} poll(s)",
            operation="commit_status",
        )
        return CommitStatus.failed(error, polls=polls)

    def _poll(
        self,
        lease: CommitLease,
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> CommitStatus:
        session = lease.session
        if timeout is None:
            timeout = self.default_timeout
        deadline = None if timeout is None else self._clock() + timeout

        polls = 0
        attempt = 0
        transient_failures = 0
        retry_after: Optional[float] = None

        while True:
            if cancel_event is not None and cancel_event.is_set():
                return self._cancelled(lease, polls, "cancelled")

            delay = self.backoff.delay(attempt, self._rng)
            if retry_after is not None:
                delay = max(delay, retry_after)
                retry_after = None
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    return self._cancelled(lease, polls, "timeout")
                delay = min(delay, remaining)

            if self._wait(delay, cancel_event):
                return self._cancelled(lease, polls, "cancelled")
            if deadline is not None and self._clock() >= deadline:
                return self._cancelled(lease, polls, "timeout")

            polls += 1
            if self.backoff.ceiling(attempt) < self.backoff.max_delay:
                attempt += 1
            try:
                response = self.booking_api.get_commit_status(session)
            except ApiError as e:
                if not e.retryable:
                    lease.mark_failed(f"status check failed: {e.kind.value}")
                    logger.error(
                        "Commit status check rejected",
                        operation="commit_status",
                        context={"session": mask_token(session.session_token), "polls": polls},
                        error=e.message,
                    )
                    return CommitStatus.failed(e, polls=polls)

                transient_failures += 1
                if transient_failures > self.backoff.max_transient_retries:
                    lease.mark_failed("transient retries exhausted")
                    logger.error(
                        "Commit status retries exhausted",
                        operation="commit_status",
                        context={
                            "session": mask_token(session.session_token),
                            "polls": polls,
                            "retries": transient_failures - 1,
                        },
                        error=e.message,
                    )
                    return CommitStatus.failed(e, polls=polls)

                if isinstance(e, TransientError):
                    retry_after = e.retry_after
                logger.warning(
                    f"Transient status failure, retrying "
                    f"({transient_failures}/{self.backoff.max_transient_retries})",
                    operation="commit_status",
                    context={"session": mask_token(session.session_token), "polls": polls},
                    error=e.message,
                )
                continue

            transient_failures = 0
            status = self._interpret_status(lease, response, polls)
            if status is not None:
                return status

            logger.debug(
                "Commit still processing",
                operation="commit_status",
                context={"session": mask_token(session.session_token), "polls": polls},
            )
