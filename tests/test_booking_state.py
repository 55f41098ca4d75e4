"""
Tests for the booking status machine.
"""

import pytest

from shuttle.core.exceptions import InvalidStateError
from shuttle.domain.booking_state import (
    RELEASED_STATUSES,
    BookingEvent,
    BookingStatus,
    next_status,
    required_status,
)


@pytest.mark.parametrize(
    "current, event, expected",
    [
        (BookingStatus.PENDING, BookingEvent.PROOF_UPLOADED, BookingStatus.WAITING_VERIFICATION),
        (BookingStatus.WAITING_VERIFICATION, BookingEvent.STAFF_ACCEPTED, BookingStatus.SUCCESS),
        (BookingStatus.WAITING_VERIFICATION, BookingEvent.STAFF_REJECTED, BookingStatus.REJECTED),
        (BookingStatus.PENDING, BookingEvent.HOLD_ELAPSED, BookingStatus.EXPIRED),
    ],
)
def test_legal_transitions(current, event, expected):
    assert next_status(current, event) == expected


def test_plain_string_status_is_accepted():
    assert next_status("pending", BookingEvent.PROOF_UPLOADED) == BookingStatus.WAITING_VERIFICATION


@pytest.mark.parametrize(
    "current",
    [BookingStatus.PENDING, BookingStatus.SUCCESS, BookingStatus.REJECTED, BookingStatus.EXPIRED, BookingStatus.CANCELLED],
)
def test_settlement_only_from_waiting_verification(current):
    with pytest.raises(InvalidStateError) as exc_info:
        next_status(current, BookingEvent.STAFF_ACCEPTED)
    assert exc_info.value.details["expected_status"] == "waiting_verification"
    assert exc_info.value.details["current_status"] == current.value


def test_expired_booking_cannot_take_a_proof():
    with pytest.raises(InvalidStateError):
        next_status(BookingStatus.EXPIRED, BookingEvent.PROOF_UPLOADED)


def test_required_status():
    assert required_status(BookingEvent.HOLD_ELAPSED) == BookingStatus.PENDING
    assert required_status(BookingEvent.STAFF_REJECTED) == BookingStatus.WAITING_VERIFICATION


def test_only_terminal_failures_release_seats():
    assert RELEASED_STATUSES == {BookingStatus.REJECTED, BookingStatus.EXPIRED, BookingStatus.CANCELLED}

    assert next_status(BookingStatus.PENDING, BookingEvent.HOLD_ELAPSED) in RELEASED_STATUSES
    assert next_status(BookingStatus.WAITING_VERIFICATION, BookingEvent.STAFF_REJECTED) in RELEASED_STATUSES
    assert next_status(BookingStatus.WAITING_VERIFICATION, BookingEvent.STAFF_ACCEPTED) not in RELEASED_STATUSES
    assert next_status(BookingStatus.PENDING, BookingEvent.PROOF_UPLOADED) not in RELEASED_STATUSES
