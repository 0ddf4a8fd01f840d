from flask import current_app

from models import db
from services.bookings import BookingStore


def get_settings():
    return current_app.extensions["park_settings"]


def get_gateway():
    """Razorpay wrapper built in create_app, or None when keys are missing."""
    return current_app.extensions.get("payment_gateway")


def get_mailer():
    return current_app.extensions.get("mailer")


def booking_store() -> BookingStore:
    return BookingStore(db.session, get_settings(), clock=current_app.extensions.get("clock"))


def get_email_dispatcher():
    """Callable taking a booking id that schedules its confirmation email."""
    return current_app.extensions["email_dispatcher"]
