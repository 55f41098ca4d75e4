"""
Schedule (a departure on a route) and its Seat Ledger.

Key design decisions:
- One Seat row per physical seat is created in the same transaction as the
  schedule. Seat rows are never deleted; the schedule is soft-deleted.
- `Seat.claimed` is the source of truth for availability. The schedule's
  `available_seats` is a denormalized projection recomputed from the ledger on
  read paths; conflict detection never consults it.
- `Seat.version` is bumped on every claim/release so a compare-and-swap
  (`WHERE claimed = false`) detects a concurrent writer even on backends
  without row locks.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Numeric, ForeignKey, Index, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from shuttle.db.base import Base, TimestampMixin, UTCDateTime


class Schedule(Base, TimestampMixin):
    __tablename__ = "schedules"

    id = Column(Integer, primary_key=True, index=True)
    route_id = Column(Integer, ForeignKey("routes.id"), nullable=False, index=True)
    departure_time = Column(UTCDateTime, nullable=False)
    arrival_time = Column(UTCDateTime, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    deleted_at = Column(UTCDateTime, nullable=True)

    route = relationship("Route", back_populates="schedules", lazy="joined", innerjoin=True)
    seats = relationship("Seat", back_populates="schedule", lazy="noload", order_by="Seat.id")

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="check_schedule_total_seats_positive"),
        CheckConstraint("available_seats >= 0", name="check_schedule_available_non_negative"),
        CheckConstraint("available_seats <= total_seats", name="check_schedule_available_lte_total"),
        CheckConstraint("price > 0", name="check_schedule_price_positive"),
        CheckConstraint("arrival_time > departure_time", name="check_schedule_arrival_after_departure"),
        Index("ix_schedules_departure", "departure_time"),
    )

    def __repr__(self) -> str:
        return f"<Schedule(id={self.id}, route={self.route_id}, departs={self.departure_time})>"


class Seat(Base, TimestampMixin):
    __tablename__ = "seats"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id"), nullable=False, index=True)
    label = Column(String(10), nullable=False)
    claimed = Column(Boolean, nullable=False, default=False)
    version = Column(Integer, nullable=False, default=1)

    schedule = relationship("Schedule", back_populates="seats", lazy="noload")

    __table_args__ = (
        UniqueConstraint("schedule_id", "label", name="uq_seats_schedule_label"),
    )

    def __repr__(self) -> str:
        return f"<Seat(id={self.id}, schedule={self.schedule_id}, label={self.label}, claimed={self.claimed})>"
