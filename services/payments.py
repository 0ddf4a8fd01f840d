from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from models import Payment
from services.bookings import BookingStore
from services.pricing import to_minor_units
from services.razorpay_gateway import GATEWAY_NAME, RazorpayGateway
from utils.errors import (
    InvalidState,
    NotFound,
    PolicyViolation,
    ServerMisconfigured,
    ValidationError,
)

logger = logging.getLogger(__name__)

MIN_AMOUNT_MINOR = 100  # ₹1


def create_order(store: BookingStore, gateway: Optional[RazorpayGateway], data: dict) -> dict:
    if gateway is None:
        raise ServerMisconfigured("Razorpay credentials not configured")

    booking_id = data.get("booking_id")
    amount = data.get("amount")
    if not booking_id or not amount:
        raise ValidationError("Missing required fields: booking_id and amount")

    try:
        amount_decimal = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError("Amount must be a number")
    if not amount_decimal.is_finite():
        raise ValidationError("Amount must be a number")

    amount_paise = to_minor_units(amount_decimal)
    if amount_paise < MIN_AMOUNT_MINOR:
        raise PolicyViolation("Amount must be at least ₹1")

    booking = store.load(booking_id)
    profile = booking.user
    currency = store.settings.currency

    order = gateway.create_order(
        amount_paise,
        currency,
        receipt=booking.booking_number,
        notes={
            "booking_id": str(booking.id),
            "booking_number": booking.booking_number,
            "customer_name": profile.full_name or "",
            "customer_email": profile.email,
        },
    )

    payment = Payment(
        booking_id=booking.id,
        razorpay_order_id=order["id"],
        amount=amount_decimal,
        currency=currency,
        status="pending",
    )
    store.session.add(payment)
    try:
        store.session.commit()
    except SQLAlchemyError:
        # the order already exists upstream; the checkout can still proceed
        store.session.rollback()
        logger.exception("Failed to create payment record for order %s", order["id"])
        payment = None

    return {
        "success": True,
        "order": {
            "id": order["id"],
            "amount": order.get("amount", amount_paise),
            "currency": order.get("currency", currency),
            "receipt": order.get("receipt", booking.booking_number),
        },
        "payment_id": payment.id if payment is not None else None,
        "key_id": gateway.key_id,
        "prefill": {
            "name": profile.full_name,
            "email": profile.email,
            "contact": profile.phone_number,
        },
    }


def verify_payment(
    store: BookingStore,
    gateway: Optional[RazorpayGateway],
    data: dict,
    on_confirmed: Optional[Callable[[int], None]] = None,
) -> tuple[dict, bool]:
    """
    Check the checkout signature and settle the payment and booking.

    Returns ``(body, ok)``; ``ok`` is False when the signature did not match.
    ``on_confirmed`` is called with the booking id after the confirmation is
    committed; its failures are logged and never reach the caller.
    """
    order_id = data.get("razorpay_order_id")
    payment_id = data.get("razorpay_payment_id")
    signature = data.get("razorpay_signature")
    booking_id = data.get("booking_id")

    if not order_id or not payment_id or not signature or not booking_id:
        raise ValidationError("Missing required payment verification fields")

    if gateway is None:
        raise ServerMisconfigured("Razorpay secret not configured")

    is_valid = gateway.verify_signature(order_id, payment_id, signature)

    payment = (
        store.session.query(Payment)
        .filter_by(razorpay_order_id=order_id)
        .with_for_update()
        .first()
    )

    if not is_valid:
        if payment is not None and payment.status == "pending":
            payment.status = "failed"
            payment.error_description = "Signature verification failed"
            store.commit("record failed payment")
        logger.warning("Signature mismatch for order %s", order_id)
        return {"success": False, "error": "Payment verification failed", "error_kind": "signature_mismatch"}, False

    if payment is None:
        raise NotFound("Payment order not found")

    booking = store.load(booking_id, for_update=True)
    if payment.booking_id != booking.id:
        raise ValidationError("Order does not belong to this booking")

    if payment.status == "successful":
        if payment.razorpay_payment_id != payment_id:
            raise InvalidState("Order was already paid with a different payment")
        if booking.status == "cancelled":
            raise InvalidState("Booking is cancelled; payment recorded")
        return {
            "success": True,
            "message": "Payment already verified",
            "booking_id": booking.id,
            "already_verified": True,
        }, True
    if payment.status != "pending":
        raise InvalidState(f"Payment is already {payment.status}")

    payment.razorpay_payment_id = payment_id
    payment.razorpay_signature = signature
    payment.status = "successful"
    payment.payment_method = GATEWAY_NAME

    if booking.status != "pending":
        # money was captured, but only a pending booking moves to confirmed
        current = booking.status
        store.add_log(
            booking,
            f"payment_received_for_{current}",
            current,
            current,
            notes=f"Payment ID: {payment_id}",
        )
        store.commit("record payment")
        logger.warning("Payment %s received for %s booking %s", payment_id, current, booking.booking_number)
        if current == "cancelled":
            raise InvalidState("Booking is cancelled; payment recorded")
        return {
            "success": True,
            "message": "Payment recorded",
            "booking_id": booking.id,
        }, True

    old_status = booking.status
    booking.status = "confirmed"
    confirmed_id, booking_number = booking.id, booking.booking_number
    store.add_log(
        booking,
        "payment_successful",
        old_status,
        "confirmed",
        notes=f"Payment ID: {payment_id}",
    )
    store.commit("confirm payment")
    logger.info("Booking %s confirmed by payment %s", booking_number, payment_id)

    if on_confirmed is not None:
        try:
            on_confirmed(confirmed_id)
        except Exception:
            logger.exception("Failed to trigger confirmation email for booking %s", confirmed_id)

    return {
        "success": True,
        "message": "Payment verified successfully",
        "booking_id": confirmed_id,
    }, True
