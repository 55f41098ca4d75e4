"""
Route catalog entry: an origin/destination city pair served by schedules.
"""

from sqlalchemy import Column, Integer, String, Index, text
from sqlalchemy.orm import relationship

from shuttle.db.base import Base, TimestampMixin, UTCDateTime


class Route(Base, TimestampMixin):
    __tablename__ = "routes"

    id = Column(Integer, primary_key=True, index=True)
    origin_city = Column(String(100), nullable=False)
    destination_city = Column(String(100), nullable=False)
    deleted_at = Column(UTCDateTime, nullable=True)

    schedules = relationship("Schedule", back_populates="route", lazy="noload")

    __table_args__ = (
        # One live route per city pair; soft-deleted rows keep their history
        Index(
            "uq_routes_live_pair",
            "origin_city",
            "destination_city",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Route(id={self.id}, {self.origin_city}->{self.destination_city})>"
