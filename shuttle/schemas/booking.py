"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field

from shuttle.core.config import get_settings
from shuttle.domain.booking_state import BookingStatus, PaymentStatus
from shuttle.models.booking import Booking
from shuttle.schemas.schedule import ScheduleResponse

settings = get_settings()


class PassengerSeat(BaseModel):
    seat_id: int = Field(..., gt=0)
    passenger_name: str = Field(..., min_length=2, max_length=100)


class BookingCreate(BaseModel):
    schedule_id: int = Field(..., gt=0)
    passengers: list[PassengerSeat] = Field(..., min_length=1, max_length=settings.MAX_PASSENGERS)


class BookingStatusUpdate(BaseModel):
    status: Literal["success", "rejected"]
    notes: Optional[str] = Field(None, max_length=500)


class PassengerResponse(BaseModel):
    seat_id: int
    seat_label: str
    passenger_name: str
    price: Decimal


class PaymentResponse(BaseModel):
    id: int
    method: str
    status: PaymentStatus
    verified_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    user_id: int
    schedule_id: int
    status: BookingStatus
    expires_at: datetime
    payment_amount: Decimal
    passenger_count: int
    created_at: datetime

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            user_id=booking.user_id,
            schedule_id=booking.schedule_id,
            status=booking.status,
            expires_at=booking.expires_at,
            payment_amount=booking.payment_amount,
            passenger_count=len(booking.lines),
            created_at=booking.created_at,
        )


class BookingDetailResponse(BookingResponse):
    updated_at: datetime
    schedule: Optional[ScheduleResponse] = None
    passengers: list[PassengerResponse]
    payment: Optional[PaymentResponse] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingDetailResponse":
        summary = BookingResponse.from_booking(booking)
        return cls(
            **summary.model_dump(),
            updated_at=booking.updated_at,
            schedule=ScheduleResponse.from_schedule(booking.schedule) if booking.schedule else None,
            passengers=[
                PassengerResponse(
                    seat_id=line.seat_id,
                    seat_label=line.seat.label,
                    passenger_name=line.passenger_name,
                    price=line.price,
                )
                for line in booking.lines
            ],
            payment=PaymentResponse.model_validate(booking.payment) if booking.payment else None,
        )


class BookingStatusResponse(BaseModel):
    message: str
    booking_id: int
    status: BookingStatus
