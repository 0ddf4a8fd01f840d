import json
import logging
from datetime import datetime, timezone
from urllib.parse import quote

from sqlalchemy.exc import SQLAlchemyError

from services.bookings import BookingStore
from utils.errors import ValidationError

logger = logging.getLogger(__name__)

# characters left alone by JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


def build_qr_payload(booking, booking_id=None) -> str:
    return json.dumps({
        "booking_id": booking_id if booking_id is not None else booking.id,
        "booking_number": booking.booking_number,
        "visit_date": booking.visit_date.isoformat(),
        "guests": booking.guests,
        "verified": True,
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z"),
    })


def build_qr_url(base_url: str, payload: str) -> str:
    encoded = quote(payload, safe=_URI_COMPONENT_SAFE)
    return f"{base_url}?size=300x300&data={encoded}&bgcolor=ffffff&color=000000&margin=10"


def generate_qr_code(store: BookingStore, data: dict) -> dict:
    booking_id = data.get("booking_id")
    if not booking_id:
        raise ValidationError("Missing booking_id")

    booking = store.load(booking_id)
    payload = build_qr_payload(booking, booking_id=booking_id)
    qr_code_url = build_qr_url(store.settings.qr_api_url, payload)

    # repeated calls overwrite the previous payload
    booking.qr_code = payload
    booking.qr_code_url = qr_code_url
    try:
        store.session.commit()
    except SQLAlchemyError:
        store.session.rollback()
        logger.exception("Failed to update booking %s with QR code", booking.id)

    return {
        "success": True,
        "qr_code_url": qr_code_url,
        "booking_number": booking.booking_number,
    }
