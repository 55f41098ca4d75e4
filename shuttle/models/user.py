"""
User model with secure password storage and a role used for staff/admin checks.
"""

from enum import Enum

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship

from shuttle.db.base import Base, TimestampMixin


class UserRole(str, Enum):
    USER = "user"
    STAFF = "staff"
    ADMIN = "admin"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    phone_number = Column(String(20), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(
        SAEnum(UserRole, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.USER,
    )
    is_active = Column(Boolean, default=True, nullable=False)

    bookings = relationship("Booking", back_populates="user", lazy="noload")

    __table_args__ = (
        CheckConstraint("role IN ('user', 'staff', 'admin')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
