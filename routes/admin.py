from datetime import datetime, time, timedelta
from decimal import Decimal, InvalidOperation

from flask import Blueprint, current_app, jsonify, g, request
from sqlalchemy import or_

from models import db
from models.login import UserLogin
from models.park_pass import Pass
from models.payment import Payment
from models.setting import Setting
from models.user import User
from services.bookings import parse_date
from utils.audit import login_stats
from utils.auth_context import admin_required
from utils.deps import booking_store
from utils.errors import NotFound, ValidationError

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

PASS_EDITABLE_FIELDS = ("name", "description", "duration", "features", "sort_order", "is_active", "price")


def _limit(default: int = 50, ceiling: int = 500) -> int:
    limit = request.args.get("limit", type=int) or default
    return max(1, min(limit, ceiling))


@admin_bp.get("/stats")
@admin_required
def stats():
    return jsonify(success=True, stats=booking_store().dashboard_stats()), 200


@admin_bp.get("/bookings")
@admin_required
def list_bookings():
    filters = {
        key: request.args.get(key)
        for key in ("status", "payment_status", "pass_slug", "date_from", "date_to", "search")
    }
    filters["limit"] = request.args.get("limit", type=int)
    filters["offset"] = request.args.get("offset", type=int)

    rows, total = booking_store().list_bookings(filters)
    out = []
    for b in rows:
        item = b.to_dict()
        item["user_name"] = b.user.full_name
        item["user_email"] = b.user.email
        out.append(item)
    return jsonify(success=True, bookings=out, total=total), 200


@admin_bp.get("/bookings/<int:booking_id>")
@admin_required
def booking_detail(booking_id: int):
    store = booking_store()
    booking = store.load(booking_id)
    payment = store.latest_payment(booking.id)
    return jsonify(
        success=True,
        booking=booking.to_dict(),
        profile={
            "full_name": booking.user.full_name,
            "email": booking.user.email,
            "phone": booking.user.phone_number,
        },
        payment=payment.to_dict() if payment else None,
        logs=[log.to_dict() for log in store.booking_logs(booking.id)],
    ), 200


@admin_bp.post("/bookings/<int:booking_id>/status")
@admin_required
def update_booking_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    new_status = (data.get("status") or "").strip()
    notes = (data.get("notes") or "").strip()

    booking = booking_store().update_status(booking_id, new_status, g.user, notes)
    return jsonify(
        success=True,
        booking=booking.to_dict(),
        message=f"Booking status updated to {new_status}",
    ), 200


@admin_bp.get("/payments")
@admin_required
def list_payments():
    q = Payment.query
    status = request.args.get("status")
    if status:
        q = q.filter(Payment.status == status)

    date_from = request.args.get("date_from")
    if date_from:
        q = q.filter(Payment.created_at >= datetime.combine(parse_date(date_from, "date_from"), time.min))
    date_to = request.args.get("date_to")
    if date_to:
        # inclusive of the whole end day
        q = q.filter(Payment.created_at < datetime.combine(parse_date(date_to, "date_to") + timedelta(days=1), time.min))

    rows = q.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(_limit()).all()
    out = []
    for p in rows:
        item = p.to_dict()
        item["booking_number"] = p.booking.booking_number
        item["customer_name"] = p.booking.user.full_name
        item["customer_email"] = p.booking.user.email
        out.append(item)
    return jsonify(success=True, payments=out), 200


@admin_bp.get("/users")
@admin_required
def list_users():
    q = User.query
    search = (request.args.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(
            User.full_name.ilike(pattern),
            User.email.ilike(pattern),
            User.phone_number.ilike(pattern),
        ))

    users = q.order_by(User.created_at.desc(), User.id.desc()).limit(_limit()).all()
    counts = booking_store().booking_counts_for(u.id for u in users)
    return jsonify(success=True, users=[
        {
            "id": u.id,
            "email": u.email,
            "full_name": u.full_name,
            "phone": u.phone_number,
            "is_admin": u.is_admin,
            "created_at": u.created_at.isoformat(),
            "total_bookings": counts.get(u.id, 0),
        }
        for u in users
    ]), 200


@admin_bp.get("/logins")
@admin_required
def recent_logins():
    rows = UserLogin.query.order_by(UserLogin.created_at.desc()).limit(_limit(20, 200)).all()
    return jsonify(success=True, logins=[
        {
            "user_id": r.user_id,
            "email": r.user.email,
            "ip": r.ip,
            "user_agent": r.user_agent,
            "created_at": r.created_at.isoformat(),
        }
        for r in rows
    ]), 200


@admin_bp.get("/logins/stats")
@admin_required
def logins_stats():
    return jsonify(success=True, stats=login_stats(booking_store().now())), 200


@admin_bp.get("/settings")
@admin_required
def list_settings():
    rows = Setting.query.order_by(Setting.key.asc()).all()
    return jsonify(success=True, settings={s.key: s.value for s in rows}), 200


@admin_bp.patch("/settings/<key>")
@admin_required
def update_setting(key: str):
    setting = db.session.get(Setting, key)
    if setting is None:
        raise NotFound("Setting not found")

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "value" not in data:
        raise ValidationError("Missing value")

    store = booking_store()
    setting.value = data["value"]
    setting.updated_by = g.user.id
    setting.updated_at = store.now()
    store.commit("update setting")
    current_app.logger.info("Setting %s updated by user %s", key, g.user.id)
    return jsonify(success=True, setting=setting.to_dict(), message="Settings updated successfully"), 200


@admin_bp.get("/passes")
@admin_required
def list_passes():
    passes = Pass.query.order_by(Pass.sort_order.asc(), Pass.id.asc()).all()
    return jsonify(success=True, passes=[p.to_dict() for p in passes]), 200


@admin_bp.patch("/passes/<int:pass_id>")
@admin_required
def update_pass(pass_id: int):
    park_pass = booking_store().get_pass(pass_id, active_only=False)
    data = request.get_json(silent=True) or {}

    for field in PASS_EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "price":
            try:
                value = Decimal(str(value))
            except (InvalidOperation, ValueError):
                raise ValidationError("price must be a number")
            if not value.is_finite():
                raise ValidationError("price must be a number")
            if value < 0:
                raise ValidationError("price must not be negative")
        elif field == "features" and isinstance(value, list):
            value = "\n".join(str(v) for v in value)
        elif field == "is_active":
            value = bool(value)
        elif field == "sort_order":
            try:
                value = int(value)
            except (TypeError, ValueError):
                raise ValidationError("sort_order must be an integer")
        setattr(park_pass, field, value)

    db.session.commit()
    return jsonify(success=True, **{"pass": park_pass.to_dict()}), 200


@admin_bp.post("/passes/<int:pass_id>/toggle")
@admin_required
def toggle_pass(pass_id: int):
    park_pass = booking_store().get_pass(pass_id, active_only=False)
    data = request.get_json(silent=True) or {}
    park_pass.is_active = bool(data.get("is_active", not park_pass.is_active))
    db.session.commit()
    return jsonify(success=True, **{"pass": park_pass.to_dict()}), 200


@admin_bp.get("/revenue")
@admin_required
def revenue_by_date():
    store = booking_store()
    end = request.args.get("end") or store.today().isoformat()
    start = request.args.get("start") or (parse_date(end, "end") - timedelta(days=30)).isoformat()
    return jsonify(success=True, data=store.bookings_by_date(start, end)), 200


@admin_bp.get("/bookings/<int:booking_id>/logs")
@admin_required
def booking_logs(booking_id: int):
    store = booking_store()
    booking = store.load(booking_id)
    rows = store.booking_logs(booking.id)
    return jsonify(success=True, logs=[r.to_dict() for r in rows]), 200
