"""
Booking aggregate: one user, one schedule, 1..N passenger-seat lines.

Key design decisions:
- Bookings are never deleted; terminal statuses (expired, rejected,
  cancelled) keep the row for audit.
- A BookingLine is retired (soft-removed via `retired_at`) when its booking
  releases its seats. The partial unique index on `seat_id` over live lines
  makes "one active line per seat" a store-level guarantee.
- `payment_amount` and `BookingLine.price` are snapshots taken at creation;
  later schedule price changes never touch them.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, ForeignKey, Index, CheckConstraint, text,
)
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship

from shuttle.db.base import Base, TimestampMixin, UTCDateTime
from shuttle.domain.booking_state import BookingStatus


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False, index=True)
    status = Column(
        SAEnum(BookingStatus, native_enum=False, length=32, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=BookingStatus.PENDING,
    )
    expires_at = Column(UTCDateTime, nullable=False)
    payment_amount = Column(Numeric(10, 2), nullable=False)

    user = relationship("User", back_populates="bookings", lazy="noload")
    schedule = relationship("Schedule", lazy="noload")
    lines = relationship("BookingLine", back_populates="booking", lazy="noload", order_by="BookingLine.id")
    payment = relationship("Payment", back_populates="booking", uselist=False, lazy="noload")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'waiting_verification', 'success', 'rejected', 'expired', 'cancelled')",
            name="check_booking_status",
        ),
        CheckConstraint("payment_amount >= 0", name="check_booking_amount_non_negative"),
        # Reaper scan: pending bookings ordered by deadline
        Index("ix_bookings_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, schedule={self.schedule_id}, status={self.status})>"


class BookingLine(Base, TimestampMixin):
    __tablename__ = "booking_lines"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, index=True)
    seat_id = Column(Integer, ForeignKey("seats.id"), nullable=False, index=True)
    passenger_name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    retired_at = Column(UTCDateTime, nullable=True)

    booking = relationship("Booking", back_populates="lines", lazy="noload")
    seat = relationship("Seat", lazy="joined", innerjoin=True)

    __table_args__ = (
        Index(
            "uq_booking_lines_active_seat",
            "seat_id",
            unique=True,
            postgresql_where=text("retired_at IS NULL"),
            sqlite_where=text("retired_at IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<BookingLine(id={self.id}, booking={self.booking_id}, seat={self.seat_id})>"
