from shuttle.schemas.user import UserCreate, UserResponse, UserLogin, Token
from shuttle.schemas.route import RouteCreate, RouteUpdate, RouteResponse
from shuttle.schemas.schedule import (
    ScheduleCreate, ScheduleUpdate, ScheduleResponse, SeatResponse, AvailableSeatsResponse,
)
from shuttle.schemas.booking import (
    BookingCreate, BookingStatusUpdate, BookingResponse, BookingDetailResponse, BookingStatusResponse,
)
from shuttle.schemas.common import Page

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "RouteCreate", "RouteUpdate", "RouteResponse",
    "ScheduleCreate", "ScheduleUpdate", "ScheduleResponse", "SeatResponse", "AvailableSeatsResponse",
    "BookingCreate", "BookingStatusUpdate", "BookingResponse", "BookingDetailResponse",
    "BookingStatusResponse",
    "Page",
]
