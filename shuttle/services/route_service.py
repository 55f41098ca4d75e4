"""
Route catalog CRUD (admin only).

Routes are soft-deleted so that historical schedules and bookings keep
pointing at a real row. Listings are cached in Redis and invalidated on
every write.
"""

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.core.exceptions import ConflictError, NotFoundError, ValidationError
from shuttle.core.logging import get_logger
from shuttle.db.base import utcnow
from shuttle.models.route import Route
from shuttle.models.schedule import Schedule
from shuttle.schemas.route import RouteCreate, RouteUpdate
from shuttle.services.cache_service import invalidate_route_cache

logger = get_logger(__name__)


async def _check_duplicate(
    db: AsyncSession,
    origin: str,
    destination: str,
    exclude_id: Optional[int] = None,
) -> None:
    if origin.strip().lower() == destination.strip().lower():
        raise ValidationError(
            "Origin city and destination city cannot be the same",
            {"origin_city": origin, "destination_city": destination},
        )

    query = select(Route.id).where(
        func.lower(Route.origin_city) == origin.lower(),
        func.lower(Route.destination_city) == destination.lower(),
        Route.deleted_at.is_(None),
    )
    if exclude_id is not None:
        query = query.where(Route.id != exclude_id)
    if await db.scalar(query) is not None:
        raise ConflictError(
            "Route with the same origin and destination already exists",
            {"origin_city": origin, "destination_city": destination},
        )


async def create_route(db: AsyncSession, data: RouteCreate) -> Route:
    await _check_duplicate(db, data.origin_city, data.destination_city)

    route = Route(origin_city=data.origin_city, destination_city=data.destination_city)
    db.add(route)
    await db.flush()
    await db.refresh(route)
    await invalidate_route_cache()

    logger.info("route_created", route_id=route.id, origin=route.origin_city, destination=route.destination_city)
    return route


async def get_route(db: AsyncSession, route_id: int) -> Route:
    result = await db.execute(select(Route).where(Route.id == route_id, Route.deleted_at.is_(None)))
    route = result.scalar_one_or_none()
    if not route:
        raise NotFoundError("route", route_id)
    return route


async def list_routes(db: AsyncSession, page: int = 1, limit: int = 10) -> tuple[list[Route], int]:
    query = select(Route).where(Route.deleted_at.is_(None))
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar()

    result = await db.execute(
        query.order_by(Route.origin_city, Route.destination_city, Route.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def update_route(db: AsyncSession, route_id: int, data: RouteUpdate) -> Route:
    route = await get_route(db, route_id)

    origin = data.origin_city or route.origin_city
    destination = data.destination_city or route.destination_city
    await _check_duplicate(db, origin, destination, exclude_id=route.id)

    route.origin_city = origin
    route.destination_city = destination
    await db.flush()
    await db.refresh(route)
    await invalidate_route_cache()

    logger.info("route_updated", route_id=route.id, origin=origin, destination=destination)
    return route


async def delete_route(db: AsyncSession, route_id: int) -> None:
    """Soft delete. Refused while live schedules still use the route."""
    route = await get_route(db, route_id)

    live = await db.scalar(
        select(func.count(Schedule.id)).where(Schedule.route_id == route.id, Schedule.deleted_at.is_(None))
    )
    if live:
        raise ConflictError(
            "Route still has schedules; delete them first",
            {"route_id": route.id, "schedules": live},
        )

    route.deleted_at = utcnow()
    await db.flush()
    await invalidate_route_cache()
    logger.info("route_deleted", route_id=route.id)
