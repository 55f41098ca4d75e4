"""
Schedule endpoints: search and seat availability for passengers, CRUD for
admins. Seat availability is always read from the ledger, never from cache.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.db.session import get_db
from shuttle.schemas.common import Page
from shuttle.schemas.schedule import (
    AvailableSeatsResponse,
    ScheduleCreate,
    ScheduleResponse,
    ScheduleUpdate,
)
from shuttle.services import schedule_service, seat_service
from shuttle.core.security import get_current_user, require_admin

router = APIRouter(prefix="/schedules", tags=["Schedules"])


@router.get("/search", response_model=Page[ScheduleResponse], dependencies=[Depends(get_current_user)])
async def search_schedules(
    origin: str = Query(..., min_length=1),
    destination: str = Query(..., min_length=1),
    departure_date: date = Query(..., description="YYYY-MM-DD in the business timezone"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Departures on a given day that still have free seats, earliest first."""
    schedules, total = await schedule_service.search_schedules(
        db, origin, destination, departure_date, page, limit
    )
    return Page[ScheduleResponse].build(
        [ScheduleResponse.from_schedule(s) for s in schedules], total, page, limit
    )


@router.get("/", response_model=Page[ScheduleResponse], dependencies=[Depends(require_admin)])
async def list_schedules(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    schedules, total = await schedule_service.list_schedules(db, page, limit)
    return Page[ScheduleResponse].build(
        [ScheduleResponse.from_schedule(s) for s in schedules], total, page, limit
    )


@router.post(
    "/",
    response_model=ScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_schedule(data: ScheduleCreate, db: AsyncSession = Depends(get_db)):
    """Create a departure and its seat ledger in one transaction."""
    schedule = await schedule_service.create_schedule(db, data)
    return ScheduleResponse.from_schedule(schedule)


@router.get("/{schedule_id}", response_model=ScheduleResponse, dependencies=[Depends(get_current_user)])
async def get_schedule(schedule_id: int, db: AsyncSession = Depends(get_db)):
    schedule = await schedule_service.get_schedule(db, schedule_id)
    return ScheduleResponse.from_schedule(schedule)


@router.get(
    "/{schedule_id}/seats",
    response_model=AvailableSeatsResponse,
    dependencies=[Depends(get_current_user)],
)
async def get_schedule_seats(schedule_id: int, db: AsyncSession = Depends(get_db)):
    """Every seat with its claimed flag."""
    return await seat_service.available_seats(db, schedule_id)


@router.put("/{schedule_id}", response_model=ScheduleResponse, dependencies=[Depends(require_admin)])
async def update_schedule(schedule_id: int, data: ScheduleUpdate, db: AsyncSession = Depends(get_db)):
    schedule = await schedule_service.update_schedule(db, schedule_id, data)
    return ScheduleResponse.from_schedule(schedule)


@router.delete("/{schedule_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
async def delete_schedule(schedule_id: int, db: AsyncSession = Depends(get_db)):
    await schedule_service.delete_schedule(db, schedule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
