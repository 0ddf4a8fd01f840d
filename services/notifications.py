from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from flask import render_template

from services.bookings import BookingStore
from services.mailer import ResendMailer
from utils.errors import ServerMisconfigured, ValidationError

logger = logging.getLogger(__name__)


def format_inr(amount) -> str:
    """Group digits the Indian way: 1234567 -> 12,34,567."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"))
    whole, _, fraction = f"{abs(value):.2f}".partition(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    sign = "-" if value < 0 else ""
    return f"{sign}{whole}" if fraction == "00" else f"{sign}{whole}.{fraction}"


def render_confirmation(booking, settings) -> str:
    profile = booking.user
    return render_template(
        "email/booking_confirmation.html",
        app_name=settings.app_name,
        app_url=settings.app_url,
        customer_name=profile.full_name or "Guest",
        booking=booking,
        pass_name=booking.park_pass.name if booking.park_pass else "",
        visit_date=f"{booking.visit_date:%A, %d %B %Y}",
    )


def send_confirmation_email(store: BookingStore, mailer: Optional[ResendMailer], data: dict) -> dict:
    if mailer is None:
        raise ServerMisconfigured("Resend API key not configured")

    booking_id = data.get("booking_id")
    if not booking_id:
        raise ValidationError("Missing booking_id")

    booking = store.load(booking_id)
    customer_email = booking.user.email if booking.user else None
    if not customer_email:
        raise ValidationError("Customer email not found")

    settings = store.settings
    html = render_confirmation(booking, settings)
    email_id = mailer.send(
        customer_email,
        f"Booking Confirmed - {booking.booking_number} | {settings.app_name}",
        html,
    )
    logger.info("Confirmation email for booking %s sent as %s", booking.booking_number, email_id)
    return {
        "success": True,
        "message": "Confirmation email sent",
        "email_id": email_id,
    }
