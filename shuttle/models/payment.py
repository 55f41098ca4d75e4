"""
Payment record: one per booking, created by the proof upload and settled by
staff.
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship

from shuttle.db.base import Base, TimestampMixin, UTCDateTime
from shuttle.domain.booking_state import PaymentStatus


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    # One booking = one payment
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    method = Column(String(50), nullable=False)
    status = Column(
        SAEnum(PaymentStatus, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    verified_at = Column(UTCDateTime, nullable=True)
    proof_locator = Column(Text, nullable=False)
    proof_content_type = Column(String(50), nullable=False)

    booking = relationship("Booking", back_populates="payment", lazy="noload")

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'success', 'failed')", name="check_payment_status"),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, booking={self.booking_id}, status={self.status})>"
