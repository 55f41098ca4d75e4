"""
Pydantic schemas for schedules and the seat ledger.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from shuttle.models.schedule import Schedule


def format_duration(departure: datetime, arrival: datetime) -> str:
    minutes = int((arrival - departure).total_seconds() // 60)
    return f"{minutes // 60}h {minutes % 60}m"


class ScheduleCreate(BaseModel):
    route_id: int = Field(..., gt=0)
    departure_time: datetime
    arrival_time: datetime
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    total_seats: int = Field(..., gt=0)


class ScheduleUpdate(BaseModel):
    """Total seats are fixed once seats exist, so they are not updatable."""

    route_id: Optional[int] = Field(None, gt=0)
    departure_time: Optional[datetime] = None
    arrival_time: Optional[datetime] = None
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)

    model_config = {"extra": "forbid"}


class ScheduleResponse(BaseModel):
    id: int
    route_id: int
    origin: str
    destination: str
    departure_time: datetime
    arrival_time: datetime
    duration: str
    price: Decimal
    total_seats: int
    available_seats: int

    @classmethod
    def from_schedule(cls, schedule: Schedule) -> "ScheduleResponse":
        return cls(
            id=schedule.id,
            route_id=schedule.route_id,
            origin=schedule.route.origin_city,
            destination=schedule.route.destination_city,
            departure_time=schedule.departure_time,
            arrival_time=schedule.arrival_time,
            duration=format_duration(schedule.departure_time, schedule.arrival_time),
            price=schedule.price,
            total_seats=schedule.total_seats,
            available_seats=schedule.available_seats,
        )


class SeatResponse(BaseModel):
    id: int
    label: str
    claimed: bool

    model_config = {"from_attributes": True}


class AvailableSeatsResponse(BaseModel):
    schedule_id: int
    total_seats: int
    available_seats: int
    booked_seats: int
    seats: list[SeatResponse]
