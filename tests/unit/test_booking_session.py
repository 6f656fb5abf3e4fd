"""
Unit tests for the booking session state machine (nsk_booking/domain/session.py)
"""

import pytest

from nsk_booking.domain import BookingSession, CommitState
from nsk_booking.domain.session import ALLOWED_TRANSITIONS
from nsk_booking.exceptions import InvalidTransitionError


def _session_in(*path):
    session = BookingSession(session_token="token-abcdef123456")
    for state in path:
        session.transition(state)
    return session


class TestBookingSession:
    def test_new_session_is_building(self):
        session = BookingSession(session_token="token-abcdef123456")

        assert session.commit_state == CommitState.BUILDING
        assert session.record_locator is None
        assert session.last_commit_request_id is None
        assert session.commit_outstanding is False
        assert [entry.state for entry in session.history] == [CommitState.BUILDING]

    def test_empty_token_rejected(self):
        with pytest.raises(ValueError):
            BookingSession(session_token="")

    def test_to_dict(self):
        session = _session_in(CommitState.COMMIT_REQUESTED, CommitState.COMMITTED)
        session.record_locator = "ABC123"

        assert session.to_dict() == {
            "commitState": "committed",
            "lastCommitRequestId": None,
            "recordLocator": "ABC123",
        }


class TestTransitions:
    def test_async_commit_path(self):
        session = _session_in(
            CommitState.COMMIT_REQUESTED,
            CommitState.COMMIT_PENDING,
            CommitState.COMMITTED,
        )

        assert session.commit_state == CommitState.COMMITTED
        assert session.is_terminal
        assert len(session.history) == 4

    def test_reason_recorded(self):
        session = BookingSession(session_token="token-abcdef123456")
        session.transition(CommitState.COMMIT_REQUESTED, "commit requested")

        assert session.history[-1].reason == "commit requested"

    @pytest.mark.parametrize(
        "path",
        [
            (CommitState.COMMIT_REQUESTED,),
            (CommitState.COMMIT_REQUESTED, CommitState.COMMIT_PENDING),
        ],
    )
    def test_outstanding_states(self, path):
        assert _session_in(*path).commit_outstanding is True

    def test_failed_session_can_return_to_building(self):
        session = _session_in(CommitState.COMMIT_REQUESTED, CommitState.COMMIT_FAILED)
        session.transition(CommitState.BUILDING, "correcting booking")

        assert session.commit_state == CommitState.BUILDING

    @pytest.mark.parametrize(
        "path,target",
        [
            ((), CommitState.COMMITTED),
            ((), CommitState.COMMIT_PENDING),
            ((CommitState.COMMIT_REQUESTED,), CommitState.COMMIT_REQUESTED),
            ((CommitState.COMMIT_REQUESTED, CommitState.COMMIT_PENDING), CommitState.BUILDING),
            ((CommitState.COMMIT_REQUESTED, CommitState.COMMITTED), CommitState.BUILDING),
        ],
    )
    def test_illegal_transitions_raise(self, path, target):
        session = _session_in(*path)
        before = session.commit_state

        with pytest.raises(InvalidTransitionError, match="Cannot move booking session"):
            session.transition(target)

        assert session.commit_state == before

    def test_every_state_has_transition_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(CommitState)
