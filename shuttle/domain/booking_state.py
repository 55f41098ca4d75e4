"""
Booking and payment lifecycle.

The booking status set is closed and persisted as plain strings. Transitions
are driven by events; any (status, event) pair missing from the table below is
illegal.

    pending --proof_uploaded--> waiting_verification
    waiting_verification --staff_accepted--> success
    waiting_verification --staff_rejected--> rejected
    pending --hold_elapsed--> expired
"""

from enum import Enum

from shuttle.core.exceptions import InvalidStateError


class BookingStatus(str, Enum):
    PENDING = "pending"
    WAITING_VERIFICATION = "waiting_verification"
    SUCCESS = "success"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class BookingEvent(str, Enum):
    PROOF_UPLOADED = "proof_uploaded"
    STAFF_ACCEPTED = "staff_accepted"
    STAFF_REJECTED = "staff_rejected"
    HOLD_ELAPSED = "hold_elapsed"


# Terminal statuses that hand their seats back to the ledger; every other
# status keeps its booking lines live.
RELEASED_STATUSES = frozenset({
    BookingStatus.REJECTED,
    BookingStatus.EXPIRED,
    BookingStatus.CANCELLED,
})

_TRANSITIONS: dict[tuple[BookingStatus, BookingEvent], BookingStatus] = {
    (BookingStatus.PENDING, BookingEvent.PROOF_UPLOADED): BookingStatus.WAITING_VERIFICATION,
    (BookingStatus.WAITING_VERIFICATION, BookingEvent.STAFF_ACCEPTED): BookingStatus.SUCCESS,
    (BookingStatus.WAITING_VERIFICATION, BookingEvent.STAFF_REJECTED): BookingStatus.REJECTED,
    (BookingStatus.PENDING, BookingEvent.HOLD_ELAPSED): BookingStatus.EXPIRED,
}

# Settlement decisions staff may submit.
SETTLEMENT_EVENTS = {
    BookingStatus.SUCCESS: BookingEvent.STAFF_ACCEPTED,
    BookingStatus.REJECTED: BookingEvent.STAFF_REJECTED,
}


def required_status(event: BookingEvent) -> BookingStatus:
    """The only status from which ``event`` may fire."""
    for (source, candidate), _ in _TRANSITIONS.items():
        if candidate == event:
            return source
    raise ValueError(f"Unknown booking event: {event}")


def next_status(current: BookingStatus, event: BookingEvent) -> BookingStatus:
    """
    Resolve the status reached from ``current`` on ``event``.

    Raises InvalidStateError naming the expected status when the pair is not
    a legal transition.
    """
    current = BookingStatus(current)
    try:
        return _TRANSITIONS[(current, event)]
    except KeyError:
        expected = required_status(event)
        raise InvalidStateError(
            f"Booking is {current.value}; {event.value.replace('_', ' ')} "
            f"requires status {expected.value}",
            current=current.value,
            expected=expected.value,
        ) from None

