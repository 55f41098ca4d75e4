"""
PDF receipts for settled bookings, rendered with reportlab.
"""

import asyncio
from io import BytesIO
from zoneinfo import ZoneInfo

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from shuttle.core.config import get_settings
from shuttle.core.exceptions import InvalidStateError
from shuttle.core.logging import get_logger
from shuttle.domain.booking_state import BookingStatus
from shuttle.models.booking import Booking
from shuttle.schemas.schedule import format_duration

logger = get_logger(__name__)
settings = get_settings()

_KEY_VALUE_STYLE = TableStyle([
    ("BACKGROUND", (0, 0), (0, -1), colors.lightgrey),
    ("TEXTCOLOR", (0, 0), (-1, -1), colors.black),
    ("ALIGN", (0, 0), (-1, -1), "LEFT"),
    ("FONTNAME", (0, 0), (-1, -1), "Helvetica"),
    ("FONTSIZE", (0, 0), (-1, -1), 10),
    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
])

_PASSENGER_STYLE = TableStyle([
    ("BACKGROUND", (0, 0), (-1, 0), colors.darkblue),
    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
    ("FONTSIZE", (0, 0), (-1, -1), 10),
    ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
    ("ALIGN", (-1, 0), (-1, -1), "RIGHT"),
    ("BOTTOMPADDING", (0, 0), (-1, -1), 6),
])


def _money(amount) -> str:
    return f"Rp {amount:,.2f}"


def _render(booking: Booking) -> bytes:
    tz = ZoneInfo(settings.BUSINESS_TIMEZONE)
    schedule = booking.schedule
    departure = schedule.departure_time.astimezone(tz)
    arrival = schedule.arrival_time.astimezone(tz)

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Booking receipt #{booking.id}")
    styles = getSampleStyleSheet()
    story = [
        Paragraph(settings.APP_NAME, styles["Title"]),
        Paragraph(f"Booking receipt #{booking.id}", styles["Heading2"]),
        Spacer(1, 12),
    ]

    trip = Table(
        [
            ["Route:", f"{schedule.route.origin_city} - {schedule.route.destination_city}"],
            ["Departure:", departure.strftime("%Y-%m-%d %H:%M %Z")],
            ["Arrival:", arrival.strftime("%Y-%m-%d %H:%M %Z")],
            ["Duration:", format_duration(schedule.departure_time, schedule.arrival_time)],
        ],
        colWidths=[100, 300],
    )
    trip.setStyle(_KEY_VALUE_STYLE)
    story += [trip, Spacer(1, 12)]

    rows = [["Passenger", "Seat", "Price"]]
    rows += [[line.passenger_name, line.seat.label, _money(line.price)] for line in booking.lines]
    passengers = Table(rows, colWidths=[220, 80, 100])
    passengers.setStyle(_PASSENGER_STYLE)
    story += [passengers, Spacer(1, 12)]

    payment = booking.payment
    summary = [
        ["Total paid:", _money(booking.payment_amount)],
        ["Status:", booking.status.value],
    ]
    if payment is not None:
        summary.append(["Method:", payment.method])
        if payment.verified_at:
            summary.append(["Verified at:", payment.verified_at.astimezone(tz).strftime("%Y-%m-%d %H:%M %Z")])
    table = Table(summary, colWidths=[100, 300])
    table.setStyle(_KEY_VALUE_STYLE)
    story.append(table)

    doc.build(story)
    return buffer.getvalue()


async def render_receipt(booking: Booking) -> bytes:
    """
    PDF receipt for a booking. Only confirmed (success) bookings have one.
    ``booking`` must carry its lines, payment and schedule.
    """
    if booking.status != BookingStatus.SUCCESS:
        raise InvalidStateError(
            "Receipt is only available for confirmed bookings",
            current=BookingStatus(booking.status).value,
            expected=BookingStatus.SUCCESS.value,
        )

    pdf = await asyncio.to_thread(_render, booking)
    logger.info("receipt_rendered", booking_id=booking.id, size=len(pdf))
    return pdf
