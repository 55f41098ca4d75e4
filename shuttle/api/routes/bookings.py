"""
Passenger booking endpoints: reserve seats, upload a payment proof, fetch the
receipt once staff have confirmed the payment.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from shuttle.db.session import get_db
from shuttle.domain.booking_state import BookingStatus
from shuttle.infrastructure.storage import LocalBlobStore, get_blob_store
from shuttle.schemas.booking import BookingCreate, BookingDetailResponse, BookingResponse
from shuttle.schemas.common import Page
from shuttle.services import booking_service
from shuttle.services.receipt_service import render_receipt
from shuttle.core.config import get_settings
from shuttle.core.exceptions import UploadRejectedError
from shuttle.core.security import get_current_user_id

settings = get_settings()
router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Reserve specific seats on a schedule.

    The seats are held for BOOKING_HOLD_MINUTES; upload a payment proof before
    the hold runs out or the seats go back on sale. Returns 409 when any seat
    is already held, including when a simultaneous request wins the race.
    """
    booking = await booking_service.create_booking(db, user_id, booking_data)
    return BookingDetailResponse.from_booking(booking)


@router.get("/", response_model=Page[BookingResponse])
async def list_my_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    bookings, total = await booking_service.list_bookings(db, user_id, status_filter, page, limit)
    return Page[BookingResponse].build(
        [BookingResponse.from_booking(b) for b in bookings], total, page, limit
    )


@router.get("/{booking_id}", response_model=BookingDetailResponse)
async def get_my_booking(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    booking = await booking_service.get_booking(db, booking_id, user_id)
    return BookingDetailResponse.from_booking(booking)


@router.post("/{booking_id}/payment", response_model=BookingDetailResponse)
async def upload_payment_proof(
    booking_id: int,
    payment_method: str = Form(..., min_length=2, max_length=50),
    payment_proof: UploadFile = File(...),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
):
    """
    Upload a JPEG/PNG transfer receipt (max 5 MB). Moves the booking to
    waiting_verification. 410 if the hold has already run out.
    """
    content_type = (payment_proof.content_type or "").lower()
    if content_type not in settings.ALLOWED_PROOF_TYPES:
        raise UploadRejectedError(
            "Payment proof must be a JPEG or PNG image",
            {"content_type": content_type, "allowed": settings.ALLOWED_PROOF_TYPES},
        )

    content = await payment_proof.read(settings.MAX_UPLOAD_BYTES + 1)
    if not content:
        raise UploadRejectedError("Payment proof file is empty")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise UploadRejectedError(
            "Payment proof exceeds the size limit",
            {"max_bytes": settings.MAX_UPLOAD_BYTES},
        )

    booking = await booking_service.upload_payment_proof(
        db,
        store,
        booking_id=booking_id,
        user_id=user_id,
        content=content,
        content_type=content_type,
        filename=payment_proof.filename or "",
        method=payment_method,
    )
    return BookingDetailResponse.from_booking(booking)


@router.get("/{booking_id}/receipt", response_class=Response)
async def download_receipt(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """PDF receipt; only available once the booking is confirmed."""
    booking = await booking_service.get_booking(db, booking_id, user_id)
    pdf = await render_receipt(booking)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="receipt_{booking_id}.pdf"'},
    )
