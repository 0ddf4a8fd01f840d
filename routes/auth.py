from datetime import datetime

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.user import User, Role
from security.csrf import issue_csrf_token
from security.login_guard import check_login_rate, clear_failures, lockout_remaining, register_failure
from security.password import hash_password, verify_password
from security.password_policy import validate_password
from security.session import create_session, revoke_session, revoke_all_sessions
from services.password_reset import request_password_reset, reset_password
from utils.audit import record_login
from utils.auth_context import login_required
from utils.deps import get_mailer, get_settings

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _is_profile_complete(user: User) -> bool:
    for field in current_app.config.get("PROFILE_REQUIRED_FIELDS", ["full_name", "phone_number"]):
        value = getattr(user, field, None)
        if not isinstance(value, str) or not value.strip():
            return False
    return True


def _profile(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "phone_number": user.phone_number,
        "roles": [r.name for r in user.roles],
        "is_admin": user.is_admin,
        "profile_complete": _is_profile_complete(user),
    }


def _clean(value, limit: int):
    if value is None:
        return None
    if not isinstance(value, str) or len(value.strip()) > limit:
        raise ValueError
    return value.strip() or None


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not _is_valid_email(email):
        return jsonify(success=False, error="Invalid email", error_kind="validation_error"), 400
    valid, errors = validate_password(password)
    if not valid:
        return jsonify(success=False, error="Password does not meet policy", details=errors,
                       error_kind="validation_error"), 400
    try:
        full_name = _clean(data.get("full_name"), 120)
        phone = _clean(data.get("phone"), 30)
    except ValueError:
        return jsonify(success=False, error="Invalid full_name or phone", error_kind="validation_error"), 400

    if User.query.filter_by(email=email).first():
        return jsonify(success=False, error="Email already registered", error_kind="conflict"), 409

    user = User(email=email, password_hash=hash_password(password), full_name=full_name, phone_number=phone)
    customer_role = Role.query.filter_by(name="CUSTOMER").first()
    if customer_role:
        user.roles.append(customer_role)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(success=False, error="Email already registered", error_kind="conflict"), 409

    current_app.logger.info("Registered user %s", user.id)
    return jsonify(success=True, message="Registration successful", user=_profile(user)), 201


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    allowed, retry_after = check_login_rate()
    if not allowed:
        return jsonify(success=False, error="Too many login requests. Slow down.",
                       error_kind="rate_limited", retry_after_seconds=retry_after), 429

    seconds_left = lockout_remaining(email)
    if seconds_left:
        return jsonify(success=False, error="Account temporarily locked. Try again later.",
                       error_kind="locked", retry_after_seconds=seconds_left), 429

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        if register_failure(email):
            current_app.logger.warning("Login locked for %s", email)
            return jsonify(success=False, error="Too many failed attempts. Account locked.",
                           error_kind="locked"), 429
        return jsonify(success=False, error="Invalid credentials", error_kind="unauthenticated"), 401

    clear_failures(email)
    revoke_all_sessions(user.id)
    raw_token = create_session(user.id)
    record_login(user.id)

    resp = jsonify(success=True, user=_profile(user))
    resp.set_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "park_session"),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    return issue_csrf_token(resp), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(success=True, user=_profile(g.user)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "park_session")
    revoke_session(request.cookies.get(cookie_name))

    resp = jsonify(success=True, message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200


@auth_bp.post("/change_password")
@login_required
def change_password():
    data = request.get_json(silent=True) or {}
    if not verify_password(data.get("current_password") or "", g.user.password_hash):
        return jsonify(success=False, error="Invalid current password", error_kind="unauthenticated"), 401

    new_password = data.get("new_password") or ""
    valid, errors = validate_password(new_password)
    if not valid:
        return jsonify(success=False, error="Password does not meet policy", details=errors,
                       error_kind="validation_error"), 400

    g.user.password_hash = hash_password(new_password)
    g.user.password_changed_at = datetime.utcnow()
    db.session.commit()
    return jsonify(success=True, message="Password updated"), 200


@auth_bp.get("/profile")
@login_required
def get_profile():
    return jsonify(success=True, user=_profile(g.user)), 200


@auth_bp.post("/profile")
@login_required
def update_profile():
    data = request.get_json(silent=True) or {}
    try:
        if "full_name" in data:
            g.user.full_name = _clean(data.get("full_name"), 120)
        if "phone" in data:
            g.user.phone_number = _clean(data.get("phone"), 30)
    except ValueError:
        return jsonify(success=False, error="Invalid full_name or phone", error_kind="validation_error"), 400

    db.session.commit()
    return jsonify(success=True, message="Profile updated", user=_profile(g.user)), 200


@auth_bp.post("/password-reset")
def password_reset_request():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    if not _is_valid_email(email):
        return jsonify(success=False, error="Invalid email", error_kind="validation_error"), 400

    request_password_reset(
        email,
        get_mailer(),
        get_settings(),
        current_app.config.get("PASSWORD_RESET_MINUTES", 30),
    )
    return jsonify(success=True, message="Password reset email sent! Please check your inbox."), 200


@auth_bp.post("/password-reset/confirm")
def password_reset_confirm():
    data = request.get_json(silent=True) or {}
    new_password = data.get("new_password") or ""
    valid, errors = validate_password(new_password)
    if not valid:
        return jsonify(success=False, error="Password does not meet policy", details=errors,
                       error_kind="validation_error"), 400

    reset_password(data.get("token"), new_password)
    return jsonify(success=True, message="Password updated successfully!"), 200
