"""
Expiry reaper: reclaims seats from pending bookings whose hold has elapsed.

Each run is one transaction:

  1. SELECT pending bookings with expires_at <= now FOR UPDATE SKIP LOCKED
  2. UPDATE them to expired, guarded by status = 'pending'
  3. retire their live lines and unclaim their seats

SKIP LOCKED lets several reaper instances run side by side: a booking being
reaped (or uploaded to, or settled) by someone else is simply skipped this
round. The status guard makes a repeated run a no-op, so the effect is
idempotent and a crashed run is repaired by the next one.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.core.logging import get_logger
from shuttle.core.metrics import bookings_expired, reaper_last_run, record_seats_released
from shuttle.db.base import utcnow
from shuttle.domain.booking_state import BookingEvent, BookingStatus, next_status
from shuttle.models.booking import Booking
from shuttle.services.seat_service import release_seats_for_bookings

logger = get_logger(__name__)


async def reap_expired_bookings(db: AsyncSession, now: Optional[datetime] = None) -> list[int]:
    """Expire every overdue pending booking. Returns the ids that were expired."""
    now = now or utcnow()

    try:
        candidates = (
            await db.execute(
                select(Booking.id)
                .where(Booking.status == BookingStatus.PENDING, Booking.expires_at <= now)
                .order_by(Booking.id)
                .with_for_update(skip_locked=True)
            )
        ).scalars().all()

        if not candidates:
            await db.commit()
            reaper_last_run.set(now.timestamp())
            return []

        target = next_status(BookingStatus.PENDING, BookingEvent.HOLD_ELAPSED)
        await db.execute(
            update(Booking)
            .where(Booking.id.in_(candidates), Booking.status == BookingStatus.PENDING)
            .values(status=target)
            .execution_options(synchronize_session=False)
        )

        # Re-read under the guard: only rows this run actually moved
        expired = (
            await db.execute(
                select(Booking.id).where(Booking.id.in_(candidates), Booking.status == target)
            )
        ).scalars().all()

        released = await release_seats_for_bookings(db, expired, now)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    bookings_expired.inc(len(expired))
    record_seats_released("expired", released)
    reaper_last_run.set(now.timestamp())
    logger.info("bookings_expired", count=len(expired), booking_ids=list(expired), seats_released=released)
    return list(expired)
