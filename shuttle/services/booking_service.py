"""
Booking service: reservation, payment-proof upload and staff settlement.

CONCURRENCY STRATEGY: Row Locks + Seat Compare-and-Swap + Partial Unique Index
=============================================================================

Problem:
  Two users pick the same seat on the same departure at the same moment.
  Both see it free, both insert a booking line, the seat is sold twice.

Solution (three layers, each sufficient on its own backend):

  1. SELECT ... FOR UPDATE on the requested seats, always in ascending id
     order, so overlapping requests serialize and never deadlock. Requests
     on disjoint seats never touch the same rows and never wait.
  2. Compare-and-swap on the seat rows:
       UPDATE seats SET claimed = true, version = version + 1
       WHERE id IN (...) AND claimed = false
     rows_affected must equal the number of requested seats.
  3. A partial unique index on booking_lines(seat_id) WHERE retired_at IS NULL
     makes a second live line for the same seat impossible at the store level.

  Any failure at any layer (unique violation, lock timeout, serialization
  failure, short CAS count) rolls the whole unit of work back and surfaces as
  ConflictError. Writes are never retried here: a retry after a lost race
  would just lose again, and the caller is better served picking another seat.

Why not the event-level optimistic counter:
  A single `available_seats` counter cannot tell *which* seat was taken. Seats
  are individually addressable here, so the lock/CAS target is the seat row
  and the schedule counter is only a read-side projection.

Lifecycle writes (upload, settlement) lock the booking row FOR UPDATE and
guard the status write with `WHERE status = <expected>`, so a concurrent
reaper or second staff member loses cleanly instead of double-applying.
"""

import time
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shuttle.core.config import get_settings
from shuttle.core.exceptions import (
    ConflictError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    ShuttleError,
    ValidationError,
)
from shuttle.core.logging import get_logger
from shuttle.core.metrics import (
    booking_latency,
    record_booking_attempt,
    record_payment_upload,
    record_seats_released,
    record_settlement,
)
from shuttle.db.base import utcnow
from shuttle.domain.booking_state import (
    RELEASED_STATUSES,
    SETTLEMENT_EVENTS,
    BookingEvent,
    BookingStatus,
    PaymentStatus,
    next_status,
)
from shuttle.infrastructure.storage import LocalBlobStore
from shuttle.models.booking import Booking, BookingLine
from shuttle.models.payment import Payment
from shuttle.models.schedule import Schedule, Seat
from shuttle.models.user import User
from shuttle.schemas.booking import BookingCreate
from shuttle.services.seat_service import release_seats_for_bookings

logger = get_logger(__name__)
settings = get_settings()


def _booking_query():
    # Status and seat writes go through UPDATE statements; always refresh
    return (
        select(Booking)
        .options(
            selectinload(Booking.lines),
            selectinload(Booking.payment),
            selectinload(Booking.schedule),
        )
        .execution_options(populate_existing=True)
    )


async def _reload(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(_booking_query().where(Booking.id == booking_id))
    return result.scalar_one()


async def create_booking(
    db: AsyncSession,
    user_id: int,
    data: BookingCreate,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Reserve the requested seats for ``user_id`` in a single transaction.

    The booking starts `pending` with a hold that expires
    BOOKING_HOLD_MINUTES from ``now``. Raises ConflictError when any seat is
    already held, including when a concurrent request wins the race.
    """
    seat_ids = [passenger.seat_id for passenger in data.passengers]
    duplicates = sorted({seat_id for seat_id in seat_ids if seat_ids.count(seat_id) > 1})
    if duplicates:
        record_booking_attempt("conflict")
        raise ConflictError(
            "The same seat was requested more than once",
            {"seat_ids": duplicates},
        )

    now = now or utcnow()
    started = time.perf_counter()

    try:
        user_exists = await db.scalar(select(User.id).where(User.id == user_id))
        if user_exists is None:
            raise NotFoundError("user", user_id)

        schedule = (
            await db.execute(
                select(Schedule).where(Schedule.id == data.schedule_id, Schedule.deleted_at.is_(None))
            )
        ).scalar_one_or_none()
        if schedule is None:
            raise NotFoundError("schedule", data.schedule_id)

        if schedule.departure_time <= now:
            raise ValidationError(
                "Schedule has already departed",
                {"schedule_id": schedule.id, "departure_time": schedule.departure_time.isoformat()},
            )

        # Lock in ascending id order so overlapping requests never deadlock
        seats = (
            await db.execute(
                select(Seat)
                .where(Seat.id.in_(sorted(seat_ids)), Seat.schedule_id == schedule.id)
                .order_by(Seat.id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalars().all()

        found = {seat.id for seat in seats}
        missing = sorted(set(seat_ids) - found)
        if missing:
            raise ValidationError(
                "Seats do not belong to this schedule",
                {"schedule_id": schedule.id, "seat_ids": missing},
            )

        held = set(
            (
                await db.execute(
                    select(BookingLine.seat_id).where(
                        BookingLine.seat_id.in_(seat_ids),
                        BookingLine.retired_at.is_(None),
                    )
                )
            ).scalars().all()
        )
        taken = [seat.label for seat in seats if seat.claimed or seat.id in held]
        if taken:
            raise ConflictError("Seats are already booked", {"seats": taken})

        claim = await db.execute(
            update(Seat)
            .where(Seat.id.in_(seat_ids), Seat.claimed.is_(False))
            .values(claimed=True, version=Seat.version + 1)
            .execution_options(synchronize_session=False)
        )
        if claim.rowcount != len(seat_ids):
            raise ConflictError("Seats were taken by a concurrent booking", {"seat_ids": seat_ids})

        booking = Booking(
            user_id=user_id,
            schedule_id=schedule.id,
            status=BookingStatus.PENDING,
            expires_at=now + timedelta(minutes=settings.BOOKING_HOLD_MINUTES),
            payment_amount=schedule.price * len(seat_ids),
        )
        db.add(booking)
        await db.flush()

        db.add_all(
            [
                BookingLine(
                    booking_id=booking.id,
                    seat_id=passenger.seat_id,
                    passenger_name=passenger.passenger_name,
                    price=schedule.price,
                )
                for passenger in data.passengers
            ]
        )
        await db.flush()
        await db.commit()
    except ShuttleError as e:
        await db.rollback()
        record_booking_attempt("conflict" if isinstance(e, ConflictError) else "rejected")
        logger.warning(
            "booking_failed",
            user_id=user_id,
            schedule_id=data.schedule_id,
            seat_ids=seat_ids,
            code=e.error_code,
            reason=e.message,
        )
        raise
    except (IntegrityError, DBAPIError) as e:
        # Unique index, lock timeout, serialization failure: someone else won
        await db.rollback()
        record_booking_attempt("conflict")
        logger.warning(
            "booking_conflict",
            user_id=user_id,
            schedule_id=data.schedule_id,
            seat_ids=seat_ids,
            error=str(getattr(e, "orig", e)),
        )
        raise ConflictError(
            "Seats were taken by a concurrent booking",
            {"seat_ids": seat_ids},
        ) from e
    finally:
        booking_latency.observe(time.perf_counter() - started)

    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        schedule_id=schedule.id,
        seats=len(seat_ids),
        amount=str(booking.payment_amount),
        expires_at=booking.expires_at.isoformat(),
    )
    return await _reload(db, booking.id)


async def upload_payment_proof(
    db: AsyncSession,
    store: LocalBlobStore,
    booking_id: int,
    user_id: int,
    content: bytes,
    content_type: str,
    filename: str,
    method: str,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Attach a payment proof to a pending booking and move it to
    waiting_verification.

    Checks, in order: ownership (NotFound), no payment yet (Conflict), hold
    not elapsed (Expired), status pending (InvalidState). A lapsed hold is
    Expired whether or not the reaper has already collected the booking.
    """
    now = now or utcnow()

    booking = (
        await db.execute(
            select(Booking)
            .where(Booking.id == booking_id, Booking.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if booking is None:
        raise NotFoundError("booking", booking_id)

    existing = await db.scalar(select(Payment.id).where(Payment.booking_id == booking_id))
    if existing is not None:
        record_payment_upload("conflict")
        raise ConflictError("Payment proof already uploaded", {"booking_id": booking_id})

    lapsed = booking.status == BookingStatus.PENDING and booking.expires_at <= now
    if booking.status == BookingStatus.EXPIRED or lapsed:
        record_payment_upload("expired")
        raise ExpiredError(
            "Booking hold has expired",
            {"booking_id": booking_id, "expired_at": booking.expires_at.isoformat()},
        )

    try:
        target = next_status(booking.status, BookingEvent.PROOF_UPLOADED)
    except InvalidStateError:
        record_payment_upload("invalid_state")
        raise

    locator = await store.save(content, content_type, "payments", f"payment_{booking_id}")
    try:
        db.add(
            Payment(
                booking_id=booking_id,
                method=method,
                status=PaymentStatus.PENDING,
                proof_locator=locator,
                proof_content_type=content_type,
            )
        )
        await db.flush()

        moved = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == BookingStatus.PENDING)
            .values(status=target)
            .execution_options(synchronize_session=False)
        )
        if moved.rowcount != 1:
            raise InvalidStateError(
                "Booking changed state during upload",
                expected=BookingStatus.PENDING.value,
            )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        await store.delete(locator)
        record_payment_upload("conflict")
        raise ConflictError("Payment proof already uploaded", {"booking_id": booking_id}) from e
    except Exception:
        await db.rollback()
        await store.delete(locator)
        raise

    record_payment_upload("accepted")
    logger.info(
        "payment_proof_uploaded",
        booking_id=booking_id,
        user_id=user_id,
        method=method,
        filename=filename,
        size=len(content),
        locator=locator,
    )
    return await _reload(db, booking_id)


async def update_booking_status(
    db: AsyncSession,
    booking_id: int,
    new_status: str,
    staff_id: Optional[int] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """
    Settle a booking that is waiting for verification.

    ``success`` confirms the booking and its payment; the seats stay claimed.
    ``rejected`` fails the payment and hands the seats back to the ledger the
    same way the expiry reaper does.
    """
    try:
        decision = BookingStatus(new_status)
        event = SETTLEMENT_EVENTS[decision]
    except (ValueError, KeyError):
        raise ValidationError(
            "Status must be one of: success, rejected",
            {"status": new_status},
        ) from None

    now = now or utcnow()

    booking = (
        await db.execute(
            select(Booking)
            .where(Booking.id == booking_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if booking is None:
        raise NotFoundError("booking", booking_id)

    target = next_status(booking.status, event)
    expected = booking.status

    try:
        moved = await db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected)
            .values(status=target)
            .execution_options(synchronize_session=False)
        )
        if moved.rowcount != 1:
            raise InvalidStateError(
                "Booking was settled concurrently",
                expected=BookingStatus.WAITING_VERIFICATION.value,
            )

        payment_status = PaymentStatus.SUCCESS if target == BookingStatus.SUCCESS else PaymentStatus.FAILED
        await db.execute(
            update(Payment)
            .where(Payment.booking_id == booking_id)
            .values(status=payment_status, verified_at=now)
            .execution_options(synchronize_session=False)
        )

        released = 0
        if target in RELEASED_STATUSES:
            released = await release_seats_for_bookings(db, [booking_id], now)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    record_settlement(target.value)
    record_seats_released(target.value, released)
    logger.info(
        "booking_settled",
        booking_id=booking_id,
        staff_id=staff_id,
        status=target.value,
        seats_released=released,
        notes=notes,
    )
    return await _reload(db, booking_id)


async def get_booking(db: AsyncSession, booking_id: int, user_id: Optional[int] = None) -> Booking:
    """Booking with lines, payment and schedule. Scoped to ``user_id`` when given."""
    query = _booking_query().where(Booking.id == booking_id)
    if user_id is not None:
        query = query.where(Booking.user_id == user_id)
    booking = (await db.execute(query)).scalar_one_or_none()
    if booking is None:
        raise NotFoundError("booking", booking_id)
    return booking


async def list_bookings(
    db: AsyncSession,
    user_id: Optional[int] = None,
    status: Optional[BookingStatus] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Booking], int]:
    """Newest first. Returns (page items, total count)."""
    filters = []
    if user_id is not None:
        filters.append(Booking.user_id == user_id)
    if status is not None:
        filters.append(Booking.status == status)

    total = await db.scalar(select(func.count(Booking.id)).where(*filters))
    result = await db.execute(
        _booking_query()
        .where(*filters)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def get_payment_proof(
    db: AsyncSession,
    store: LocalBlobStore,
    booking_id: int,
) -> tuple[bytes, str, str]:
    """Proof bytes, content type and a download filename for staff review."""
    payment = (
        await db.execute(select(Payment).where(Payment.booking_id == booking_id))
    ).scalar_one_or_none()
    if payment is None:
        raise NotFoundError("payment", booking_id)

    data = await store.read(payment.proof_locator)
    filename = payment.proof_locator.rsplit("/", 1)[-1]
    return data, payment.proof_content_type, filename
