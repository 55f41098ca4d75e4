from shuttle.models.user import User, UserRole
from shuttle.models.route import Route
from shuttle.models.schedule import Schedule, Seat
from shuttle.models.booking import Booking, BookingLine
from shuttle.models.payment import Payment

__all__ = [
    "User", "UserRole",
    "Route",
    "Schedule", "Seat",
    "Booking", "BookingLine",
    "Payment",
]
