"""
Staff endpoints: review bookings, download payment proofs, settle.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.db.session import get_db
from shuttle.domain.booking_state import BookingStatus
from shuttle.infrastructure.storage import LocalBlobStore, get_blob_store
from shuttle.models.user import User
from shuttle.schemas.booking import (
    BookingDetailResponse,
    BookingResponse,
    BookingStatusResponse,
    BookingStatusUpdate,
)
from shuttle.schemas.common import Page
from shuttle.services import booking_service
from shuttle.core.security import require_staff

router = APIRouter(prefix="/staff/bookings", tags=["Staff"], dependencies=[Depends(require_staff)])


@router.get("/", response_model=Page[BookingResponse])
async def list_all_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    bookings, total = await booking_service.list_bookings(db, None, status_filter, page, limit)
    return Page[BookingResponse].build(
        [BookingResponse.from_booking(b) for b in bookings], total, page, limit
    )


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_booking(booking_id: int, db: AsyncSession = Depends(get_db)):
    booking = await booking_service.get_booking(db, booking_id)
    return BookingDetailResponse.from_booking(booking)


@router.get("/{booking_id}/payment/download", response_class=Response)
async def download_payment_proof(
    booking_id: int,
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
):
    data, content_type, filename = await booking_service.get_payment_proof(db, store, booking_id)
    return Response(
        content=data,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.put("/{booking_id}/status", response_model=BookingStatusResponse)
async def update_booking_status(
    booking_id: int,
    update: BookingStatusUpdate,
    staff: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """
    Accept (success) or reject a booking waiting for verification.
    Rejection releases the seats.
    """
    booking = await booking_service.update_booking_status(
        db, booking_id, update.status, staff_id=staff.id, notes=update.notes
    )
    return BookingStatusResponse(
        message=f"Booking {booking.status.value}",
        booking_id=booking.id,
        status=booking.status,
    )
