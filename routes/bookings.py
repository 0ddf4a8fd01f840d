from flask import Blueprint, request, jsonify, g

from utils.auth_context import login_required
from utils.deps import booking_store

bookings_bp = Blueprint("bookings", __name__, url_prefix="/bookings")


@bookings_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    booking, totals = booking_store().create_booking(
        g.user,
        data.get("pass_id"),
        data.get("visit_date"),
        data.get("num_adults"),
        data.get("num_children") or 0,
        notes=data.get("special_requests"),
        dietary_preferences=data.get("dietary_preferences"),
    )
    return jsonify(success=True, booking=booking.to_dict(), totals=totals.to_dict()), 201


@bookings_bp.get("/me")
@login_required
def my_bookings():
    # ?status=pending or ?status=pending,confirmed
    status = request.args.get("status")
    if status and "," in status:
        status = [s.strip() for s in status.split(",") if s.strip()]
    rows = booking_store().list_user_bookings(g.user, status=status)
    return jsonify(success=True, bookings=[b.to_dict() for b in rows]), 200


@bookings_bp.get("/upcoming")
@login_required
def upcoming():
    rows = booking_store().upcoming_bookings(g.user)
    return jsonify(success=True, bookings=[b.to_dict() for b in rows]), 200


@bookings_bp.get("/past")
@login_required
def past():
    rows = booking_store().past_bookings(g.user)
    return jsonify(success=True, bookings=[b.to_dict() for b in rows]), 200


@bookings_bp.get("/<int:booking_id>")
@login_required
def booking_detail(booking_id: int):
    store = booking_store()
    booking = store.load(booking_id, user=g.user)
    payment = store.latest_payment(booking.id)
    return jsonify(
        success=True,
        booking=booking.to_dict(),
        payment=payment.to_dict() if payment else None,
    ), 200


@bookings_bp.get("/<int:booking_id>/payment")
@login_required
def booking_payment(booking_id: int):
    store = booking_store()
    booking = store.load(booking_id, user=g.user)
    payment = store.latest_payment(booking.id)
    return jsonify(success=True, payment=payment.to_dict() if payment else None), 200


@bookings_bp.post("/<int:booking_id>/cancel")
@login_required
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip()
    booking = booking_store().cancel_booking(booking_id, reason, user=g.user)
    return jsonify(success=True, booking=booking.to_dict(), message="Booking cancelled successfully"), 200
