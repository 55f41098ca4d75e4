"""Initial schema: users, route catalog, schedules with seat ledger, bookings, payments.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(16), nullable=False, server_default=sa.text("'user'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('user', 'staff', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Routes table (soft delete)
    op.create_table(
        "routes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("origin_city", sa.String(100), nullable=False),
        sa.Column("destination_city", sa.String(100), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_routes_id", "routes", ["id"])
    op.create_index(
        "uq_routes_live_pair",
        "routes",
        ["origin_city", "destination_city"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    # Schedules table
    op.create_table(
        "schedules",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("route_id", sa.Integer(), sa.ForeignKey("routes.id"), nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_seats", sa.Integer(), nullable=False),
        sa.Column("available_seats", sa.Integer(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("total_seats > 0", name="check_schedule_total_seats_positive"),
        sa.CheckConstraint("available_seats >= 0", name="check_schedule_available_non_negative"),
        sa.CheckConstraint("available_seats <= total_seats", name="check_schedule_available_lte_total"),
        sa.CheckConstraint("price > 0", name="check_schedule_price_positive"),
        sa.CheckConstraint("arrival_time > departure_time", name="check_schedule_arrival_after_departure"),
    )
    op.create_index("ix_schedules_id", "schedules", ["id"])
    op.create_index("ix_schedules_route_id", "schedules", ["route_id"])
    # Search filters on a departure-day window
    op.create_index("ix_schedules_departure", "schedules", ["departure_time"])

    # Seat ledger
    op.create_table(
        "seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("label", sa.String(10), nullable=False),
        sa.Column("claimed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.UniqueConstraint("schedule_id", "label", name="uq_seats_schedule_label"),
    )
    op.create_index("ix_seats_id", "seats", ["id"])
    op.create_index("ix_seats_schedule_id", "seats", ["schedule_id"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("schedule_id", sa.Integer(), sa.ForeignKey("schedules.id"), nullable=False),
        sa.Column("status", sa.String(32), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_amount", sa.Numeric(10, 2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'waiting_verification', 'success', 'rejected', 'expired', 'cancelled')",
            name="check_booking_status",
        ),
        sa.CheckConstraint("payment_amount >= 0", name="check_booking_amount_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_schedule_id", "bookings", ["schedule_id"])
    # Reaper scan: WHERE status = 'pending' AND expires_at <= now
    op.create_index("ix_bookings_status_expires", "bookings", ["status", "expires_at"])

    # Booking lines (one passenger on one seat)
    op.create_table(
        "booking_lines",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("seat_id", sa.Integer(), sa.ForeignKey("seats.id"), nullable=False),
        sa.Column("passenger_name", sa.String(100), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("retired_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_booking_lines_id", "booking_lines", ["id"])
    op.create_index("ix_booking_lines_booking_id", "booking_lines", ["booking_id"])
    op.create_index("ix_booking_lines_seat_id", "booking_lines", ["seat_id"])
    # At most one live line per seat: the store-level double-booking guard
    op.create_index(
        "uq_booking_lines_active_seat",
        "booking_lines",
        ["seat_id"],
        unique=True,
        postgresql_where=sa.text("retired_at IS NULL"),
    )

    # Payments table (one per booking)
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        sa.Column("method", sa.String(50), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("proof_locator", sa.Text(), nullable=False),
        sa.Column("proof_content_type", sa.String(50), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("booking_id", name="uq_payments_booking_id"),
        sa.CheckConstraint("status IN ('pending', 'success', 'failed')", name="check_payment_status"),
    )
    op.create_index("ix_payments_id", "payments", ["id"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("booking_lines")
    op.drop_table("bookings")
    op.drop_table("seats")
    op.drop_table("schedules")
    op.drop_table("routes")
    op.drop_table("users")
