"""
Schedule catalog: departures on a route together with their seat ledger.

Creating a schedule creates its seats in the same transaction (A1..A4, B1..).
`available_seats` on every read is recomputed from the ledger before it is
returned. Times without an offset are read in BUSINESS_TIMEZONE.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from sqlalchemy import exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.core.config import get_settings
from shuttle.core.exceptions import ConflictError, NotFoundError, ValidationError
from shuttle.core.logging import get_logger
from shuttle.db.base import utcnow
from shuttle.models.route import Route
from shuttle.models.schedule import Schedule, Seat
from shuttle.schemas.schedule import ScheduleCreate, ScheduleUpdate
from shuttle.services.route_service import get_route
from shuttle.services.seat_service import generate_seat_labels, refresh_available_counts, with_read_retry

logger = get_logger(__name__)
settings = get_settings()


def business_tz() -> ZoneInfo:
    return ZoneInfo(settings.BUSINESS_TIMEZONE)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=business_tz())
    return value.astimezone(timezone.utc)


def _validate_times(departure: datetime, arrival: datetime, now: datetime) -> None:
    if arrival <= departure:
        raise ValidationError(
            "arrival_time must be after departure_time",
            {"departure_time": departure.isoformat(), "arrival_time": arrival.isoformat()},
        )
    if departure <= now:
        raise ValidationError("departure_time cannot be in the past", {"departure_time": departure.isoformat()})


async def _load(db: AsyncSession, schedule_id: int) -> Schedule:
    result = await db.execute(
        select(Schedule)
        .where(Schedule.id == schedule_id, Schedule.deleted_at.is_(None))
        .execution_options(populate_existing=True)
    )
    schedule = result.scalar_one_or_none()
    if not schedule:
        raise NotFoundError("schedule", schedule_id)
    return schedule


async def create_schedule(db: AsyncSession, data: ScheduleCreate, now: Optional[datetime] = None) -> Schedule:
    now = now or utcnow()
    departure = to_utc(data.departure_time)
    arrival = to_utc(data.arrival_time)
    _validate_times(departure, arrival, now)

    if data.total_seats > settings.MAX_SEATS_PER_SCHEDULE:
        raise ValidationError(
            f"total_seats cannot exceed {settings.MAX_SEATS_PER_SCHEDULE}",
            {"total_seats": data.total_seats},
        )
    await get_route(db, data.route_id)

    schedule = Schedule(
        route_id=data.route_id,
        departure_time=departure,
        arrival_time=arrival,
        price=data.price,
        total_seats=data.total_seats,
        available_seats=data.total_seats,
    )
    db.add(schedule)
    await db.flush()

    db.add_all(
        [Seat(schedule_id=schedule.id, label=label, claimed=False) for label in generate_seat_labels(data.total_seats)]
    )
    await db.flush()

    logger.info(
        "schedule_created",
        schedule_id=schedule.id,
        route_id=schedule.route_id,
        departure=departure.isoformat(),
        seats=schedule.total_seats,
    )
    return await _load(db, schedule.id)


async def get_schedule(db: AsyncSession, schedule_id: int) -> Schedule:
    schedule = await with_read_retry(db, lambda: _load(db, schedule_id), "get_schedule")
    await refresh_available_counts(db, [schedule])
    return schedule


async def list_schedules(db: AsyncSession, page: int = 1, limit: int = 10) -> tuple[list[Schedule], int]:
    """Every live schedule, soonest departure first."""
    query = select(Schedule).where(Schedule.deleted_at.is_(None))

    async def _run() -> tuple[list[Schedule], int]:
        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
        result = await db.execute(
            query.order_by(Schedule.departure_time.asc(), Schedule.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    schedules, total = await with_read_retry(db, _run, "list_schedules")
    await refresh_available_counts(db, schedules)
    return schedules, total


async def search_schedules(
    db: AsyncSession,
    origin: str,
    destination: str,
    departure_date: date,
    page: int = 1,
    limit: int = 10,
    now: Optional[datetime] = None,
) -> tuple[list[Schedule], int]:
    """
    Schedules on ``departure_date`` (a business-timezone calendar day) between
    two cities that still have at least one free seat.
    """
    tz = business_tz()
    now = now or utcnow()
    if departure_date < now.astimezone(tz).date():
        raise ValidationError("departure_date cannot be in the past", {"departure_date": departure_date.isoformat()})

    start = datetime.combine(departure_date, time.min, tzinfo=tz).astimezone(timezone.utc)
    end = start + timedelta(days=1)

    has_free_seat = exists().where(Seat.schedule_id == Schedule.id, Seat.claimed.is_(False))
    query = (
        select(Schedule)
        .join(Route, Route.id == Schedule.route_id)
        .where(
            func.lower(Route.origin_city) == origin.strip().lower(),
            func.lower(Route.destination_city) == destination.strip().lower(),
            Route.deleted_at.is_(None),
            Schedule.deleted_at.is_(None),
            Schedule.departure_time >= start,
            Schedule.departure_time < end,
            has_free_seat,
        )
    )

    async def _run() -> tuple[list[Schedule], int]:
        total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()
        result = await db.execute(
            query.order_by(Schedule.departure_time.asc(), Schedule.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    schedules, total = await with_read_retry(db, _run, "search_schedules")
    await refresh_available_counts(db, schedules)
    logger.debug("schedules_searched", origin=origin, destination=destination, date=str(departure_date), found=total)
    return schedules, total


async def update_schedule(
    db: AsyncSession,
    schedule_id: int,
    data: ScheduleUpdate,
    now: Optional[datetime] = None,
) -> Schedule:
    """Seat count is fixed once the ledger exists; everything else may change."""
    now = now or utcnow()
    schedule = await _load(db, schedule_id)

    departure = to_utc(data.departure_time) if data.departure_time else schedule.departure_time
    arrival = to_utc(data.arrival_time) if data.arrival_time else schedule.arrival_time
    if data.departure_time or data.arrival_time:
        if arrival <= departure:
            raise ValidationError(
                "arrival_time must be after departure_time",
                {"departure_time": departure.isoformat(), "arrival_time": arrival.isoformat()},
            )
    if data.departure_time and departure <= now:
        raise ValidationError("departure_time cannot be in the past", {"departure_time": departure.isoformat()})

    if data.route_id is not None:
        await get_route(db, data.route_id)
        schedule.route_id = data.route_id
    if data.price is not None:
        schedule.price = data.price
    schedule.departure_time = departure
    schedule.arrival_time = arrival

    await db.flush()
    logger.info("schedule_updated", schedule_id=schedule.id, fields=sorted(data.model_dump(exclude_unset=True)))

    schedule = await _load(db, schedule.id)
    await refresh_available_counts(db, [schedule])
    return schedule


async def delete_schedule(db: AsyncSession, schedule_id: int) -> None:
    """Soft delete. Refused while any seat is held by a booking."""
    schedule = await _load(db, schedule_id)

    claimed = await db.scalar(
        select(func.count(Seat.id)).where(Seat.schedule_id == schedule.id, Seat.claimed.is_(True))
    )
    if claimed:
        raise ConflictError(
            "Cannot delete schedule with active bookings",
            {"schedule_id": schedule.id, "claimed_seats": claimed},
        )

    schedule.deleted_at = utcnow()
    await db.flush()
    logger.info("schedule_deleted", schedule_id=schedule.id)
