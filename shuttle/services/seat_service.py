"""
Seat Ledger queries and maintenance.

The `seats` table is the source of truth for availability. Everything here
either reads it (availability listings, projection refresh) or hands seats
back after a booking leaves the active set (expiry, rejection).

Availability reads are never cached: a stale "available" answer is exactly
what the reservation path has to defend against, so it reads the store every
time. Because these reads are side-effect free they may be retried on
transient storage errors; writes never are.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Iterable, Sequence, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.core.config import get_settings
from shuttle.core.exceptions import NotFoundError
from shuttle.core.logging import get_logger
from shuttle.core.metrics import db_read_retries
from shuttle.models.booking import BookingLine
from shuttle.models.schedule import Schedule, Seat
from shuttle.schemas.schedule import AvailableSeatsResponse, SeatResponse

logger = get_logger(__name__)
settings = get_settings()

T = TypeVar("T")


def generate_seat_labels(count: int, per_row: int | None = None) -> list[str]:
    """A1 A2 A3 A4 B1 ... with ``per_row`` seats to a row letter."""
    per_row = per_row or settings.SEATS_PER_ROW
    return [f"{chr(ord('A') + index // per_row)}{index % per_row + 1}" for index in range(count)]


async def with_read_retry(db: AsyncSession, operation: Callable[[], Awaitable[T]], name: str) -> T:
    """
    Run a read-only query, retrying transient OperationalErrors with
    exponential backoff. The session is rolled back between attempts.
    """
    attempts = max(settings.READ_RETRY_ATTEMPTS, 1)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except OperationalError as e:
            if attempt == attempts:
                logger.error("read_retry_exhausted", query=name, attempts=attempts, error=str(e))
                raise
            await db.rollback()
            delay = settings.READ_RETRY_BASE_DELAY * (2 ** (attempt - 1))
            db_read_retries.inc()
            logger.warning("read_retry", query=name, attempt=attempt, delay=delay, error=str(e))
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")


async def available_seats(db: AsyncSession, schedule_id: int) -> AvailableSeatsResponse:
    """Every seat of a live schedule with its claim flag, plus derived totals."""

    async def _load() -> tuple[Schedule | None, Sequence[Seat]]:
        schedule = (
            await db.execute(
                select(Schedule).where(Schedule.id == schedule_id, Schedule.deleted_at.is_(None))
            )
        ).scalar_one_or_none()
        if schedule is None:
            return None, []
        seats = (
            await db.execute(
                select(Seat)
                .where(Seat.schedule_id == schedule_id)
                .order_by(Seat.label)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()
        return schedule, seats

    schedule, seats = await with_read_retry(db, _load, "available_seats")
    if schedule is None:
        raise NotFoundError("schedule", schedule_id)

    available = sum(1 for seat in seats if not seat.claimed)
    schedule.available_seats = available
    return AvailableSeatsResponse(
        schedule_id=schedule_id,
        total_seats=len(seats),
        available_seats=available,
        booked_seats=len(seats) - available,
        seats=[SeatResponse.model_validate(seat) for seat in seats],
    )


async def refresh_available_counts(db: AsyncSession, schedules: Iterable[Schedule]) -> None:
    """
    Recompute each schedule's ``available_seats`` from the ledger and write
    it back as the advisory projection.
    """
    by_id = {schedule.id: schedule for schedule in schedules}
    if not by_id:
        return

    rows = await db.execute(
        select(Seat.schedule_id, func.count(Seat.id))
        .where(Seat.schedule_id.in_(list(by_id)), Seat.claimed.is_(False))
        .group_by(Seat.schedule_id)
    )
    counts = {schedule_id: count for schedule_id, count in rows.all()}
    for schedule_id, schedule in by_id.items():
        fresh = counts.get(schedule_id, 0)
        if schedule.available_seats != fresh:
            schedule.available_seats = fresh


async def release_seats_for_bookings(db: AsyncSession, booking_ids: Sequence[int], now: datetime) -> int:
    """
    Retire the live lines of ``booking_ids`` and unclaim their seats.

    Runs inside the caller's transaction; the caller has already moved the
    bookings to a releasing status. Returns the number of seats handed back.
    """
    if not booking_ids:
        return 0

    seat_ids = (
        await db.execute(
            select(BookingLine.seat_id).where(
                BookingLine.booking_id.in_(booking_ids),
                BookingLine.retired_at.is_(None),
            )
        )
    ).scalars().all()

    await db.execute(
        update(BookingLine)
        .where(BookingLine.booking_id.in_(booking_ids), BookingLine.retired_at.is_(None))
        .values(retired_at=now)
        .execution_options(synchronize_session=False)
    )

    if not seat_ids:
        return 0

    result = await db.execute(
        update(Seat)
        .where(Seat.id.in_(seat_ids), Seat.claimed.is_(True))
        .values(claimed=False, version=Seat.version + 1)
        .execution_options(synchronize_session=False)
    )
    released = result.rowcount
    logger.info("seats_released", booking_ids=list(booking_ids), seats=released)
    return released
