"""
Tests for the payment-proof gate and staff settlement.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import func, select, update

from shuttle.core.exceptions import (
    ConflictError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from shuttle.domain.booking_state import BookingStatus, PaymentStatus
from shuttle.models.booking import Booking, BookingLine
from shuttle.models.payment import Payment
from shuttle.models.schedule import Seat
from shuttle.schemas.booking import BookingCreate
from shuttle.services.booking_service import (
    create_booking,
    get_payment_proof,
    update_booking_status,
    upload_payment_proof,
)
from shuttle.services.reaper import reap_expired_bookings
from shuttle.services.seat_service import release_seats_for_bookings

T0 = datetime.now(timezone.utc).replace(microsecond=0)
JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 128


def _request(schedule_id: int, *seat_ids: int) -> BookingCreate:
    return BookingCreate(
        schedule_id=schedule_id,
        passengers=[{"seat_id": seat_id, "passenger_name": "Siti Rahma"} for seat_id in seat_ids],
    )


async def _upload(db, store, booking, user, minutes=10):
    return await upload_payment_proof(
        db, store, booking.id, user.id, JPEG, "image/jpeg", "transfer.jpg", "bank_transfer",
        now=T0 + timedelta(minutes=minutes),
    )


def _stored_files(store) -> list[Path]:
    root = Path(store.root)
    if not root.exists():
        return []
    return [p for p in root.rglob("*") if p.is_file()]


@pytest.fixture
def booking_factory(db_session, test_schedule, seats):
    async def _make(user, seat_index=0):
        return await create_booking(db_session, user.id, _request(test_schedule.id, seats[seat_index].id), now=T0)

    return _make


# --- payment proof upload ---------------------------------------------------


@pytest.mark.asyncio
async def test_upload_moves_booking_to_waiting_verification(db_session, blob_store, test_user, booking_factory):
    booking = await booking_factory(test_user)

    updated = await _upload(db_session, blob_store, booking, test_user)

    assert updated.status == BookingStatus.WAITING_VERIFICATION
    assert updated.payment.status == PaymentStatus.PENDING
    assert updated.payment.method == "bank_transfer"
    assert updated.payment.verified_at is None
    assert updated.payment.proof_locator.startswith("payments/payment_")

    data, content_type, filename = await get_payment_proof(db_session, blob_store, booking.id)
    assert data == JPEG
    assert content_type == "image/jpeg"
    assert filename.endswith(".jpg")


@pytest.mark.asyncio
async def test_second_upload_is_a_conflict(db_session, blob_store, test_user, booking_factory):
    """A payment already exists: Conflict, not an invalid-state error."""
    booking = await booking_factory(test_user)
    await _upload(db_session, blob_store, booking, test_user)

    with pytest.raises(ConflictError):
        await _upload(db_session, blob_store, booking, test_user, minutes=12)

    assert await db_session.scalar(select(func.count(Payment.id))) == 1
    assert len(_stored_files(blob_store)) == 1


@pytest.mark.asyncio
async def test_upload_after_deadline_is_expired_even_before_reaper(db_session, blob_store, test_user, booking_factory):
    booking = await booking_factory(test_user)

    with pytest.raises(ExpiredError):
        await _upload(db_session, blob_store, booking, test_user, minutes=31)

    assert await db_session.scalar(select(func.count(Payment.id))) == 0
    assert _stored_files(blob_store) == []
    status = await db_session.scalar(select(Booking.status).where(Booking.id == booking.id))
    assert status == BookingStatus.PENDING


@pytest.mark.asyncio
async def test_upload_to_reaped_booking_is_expired(
    db_session, session_factory, blob_store, test_user, booking_factory
):
    """Same answer as a lapsed hold the reaper has not collected yet."""
    booking = await booking_factory(test_user)
    async with session_factory() as session:
        await reap_expired_bookings(session, now=T0 + timedelta(minutes=40))

    with pytest.raises(ExpiredError) as exc_info:
        await _upload(db_session, blob_store, booking, test_user, minutes=41)
    assert exc_info.value.status_code == 410
    assert exc_info.value.details["booking_id"] == booking.id

    assert await db_session.scalar(select(func.count(Payment.id))) == 0
    assert _stored_files(blob_store) == []


@pytest.mark.asyncio
async def test_upload_to_someone_elses_booking(db_session, blob_store, test_user, other_user, booking_factory):
    booking = await booking_factory(test_user)

    with pytest.raises(NotFoundError):
        await _upload(db_session, blob_store, booking, other_user)


# --- settlement -------------------------------------------------------------


@pytest.mark.asyncio
async def test_accept_confirms_booking_and_keeps_seats(
    db_session, session_factory, blob_store, test_user, staff_user, booking_factory, seats
):
    booking = await booking_factory(test_user)
    await _upload(db_session, blob_store, booking, test_user)
    settled_at = T0 + timedelta(minutes=20)

    settled = await update_booking_status(db_session, booking.id, "success", staff_id=staff_user.id, now=settled_at)

    assert settled.status == BookingStatus.SUCCESS
    assert settled.payment.status == PaymentStatus.SUCCESS
    assert settled.payment.verified_at == settled_at
    async with session_factory() as session:
        assert await session.scalar(select(Seat.claimed).where(Seat.id == seats[0].id)) is True


@pytest.mark.asyncio
async def test_reject_fails_payment_and_releases_seats(
    db_session, session_factory, blob_store, test_user, other_user, staff_user, booking_factory, test_schedule, seats
):
    """Rejection frees the seats the same way expiry does."""
    booking = await booking_factory(test_user)
    await _upload(db_session, blob_store, booking, test_user)
    settled_at = T0 + timedelta(minutes=20)

    settled = await update_booking_status(
        db_session, booking.id, "rejected", staff_id=staff_user.id, notes="Amount mismatch", now=settled_at
    )

    assert settled.status == BookingStatus.REJECTED
    assert settled.payment.status == PaymentStatus.FAILED
    assert settled.payment.verified_at == settled_at

    async with session_factory() as session:
        assert await session.scalar(select(Seat.claimed).where(Seat.id == seats[0].id)) is False
        live = await session.scalar(
            select(func.count(BookingLine.id)).where(
                BookingLine.booking_id == booking.id, BookingLine.retired_at.is_(None)
            )
        )
        assert live == 0

    rebooked = await create_booking(
        db_session, other_user.id, _request(test_schedule.id, seats[0].id), now=settled_at
    )
    assert rebooked.status == BookingStatus.PENDING


async def _into_status(status, db, session_factory, store, booking, user, staff):
    """Drive ``booking`` to ``status`` through the real operations where one exists."""
    if status in (BookingStatus.SUCCESS, BookingStatus.REJECTED):
        await _upload(db, store, booking, user)
        await update_booking_status(db, booking.id, status.value, staff_id=staff.id, now=T0 + timedelta(minutes=20))
    elif status == BookingStatus.EXPIRED:
        async with session_factory() as session:
            await reap_expired_bookings(session, now=T0 + timedelta(minutes=40))
    elif status == BookingStatus.CANCELLED:
        # No operation cancels a booking; write the status and release like the others do
        async with session_factory() as session:
            await session.execute(
                update(Booking).where(Booking.id == booking.id).values(status=BookingStatus.CANCELLED)
            )
            await release_seats_for_bookings(session, [booking.id], T0 + timedelta(minutes=5))
            await session.commit()


async def _snapshot(session_factory, booking_id: int, seat_id: int):
    async with session_factory() as session:
        status = await session.scalar(select(Booking.status).where(Booking.id == booking_id))
        payments = (
            await session.execute(
                select(Payment.status, Payment.verified_at).where(Payment.booking_id == booking_id)
            )
        ).all()
        claimed = await session.scalar(select(Seat.claimed).where(Seat.id == seat_id))
        live = await session.scalar(
            select(func.count(BookingLine.id)).where(
                BookingLine.booking_id == booking_id, BookingLine.retired_at.is_(None)
            )
        )
    return status, [tuple(p) for p in payments], claimed, live


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status",
    [
        BookingStatus.PENDING,
        BookingStatus.SUCCESS,
        BookingStatus.REJECTED,
        BookingStatus.EXPIRED,
        BookingStatus.CANCELLED,
    ],
)
async def test_settlement_requires_waiting_verification(
    status, db_session, session_factory, blob_store, test_user, staff_user, booking_factory, seats
):
    """Only waiting_verification can be settled; anything else is left exactly as it was."""
    booking = await booking_factory(test_user)
    booking_id, seat_id = booking.id, seats[0].id
    await _into_status(status, db_session, session_factory, blob_store, booking, test_user, staff_user)
    before = await _snapshot(session_factory, booking_id, seat_id)
    assert before[0] == status

    for decision in ("success", "rejected"):
        with pytest.raises(InvalidStateError) as exc_info:
            await update_booking_status(
                db_session, booking_id, decision, staff_id=staff_user.id, now=T0 + timedelta(minutes=50)
            )
        assert exc_info.value.details == {
            "current_status": status.value,
            "expected_status": "waiting_verification",
        }

    assert await _snapshot(session_factory, booking_id, seat_id) == before


@pytest.mark.asyncio
async def test_settlement_input_validation(db_session, test_user, booking_factory):
    booking = await booking_factory(test_user)

    with pytest.raises(ValidationError):
        await update_booking_status(db_session, booking.id, "expired")
    with pytest.raises(ValidationError):
        await update_booking_status(db_session, booking.id, "bogus")
    with pytest.raises(NotFoundError):
        await update_booking_status(db_session, 999999, "success")
