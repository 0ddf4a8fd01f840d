from datetime import datetime, timedelta
from flask import current_app

from models import db
from models.login import FailedLogin, LoginWindow
from utils.audit import client_ip

def check_login_rate() -> tuple[bool, int]:
    """
    Count this login request against the caller's IP.
    Returns (allowed, retry_after_seconds) for a fixed window.
    """
    ip = client_ip()
    now = datetime.utcnow()
    window_seconds = current_app.config.get("LOGIN_RATE_WINDOW_SECONDS", 60)
    max_requests = current_app.config.get("LOGIN_RATE_MAX_REQUESTS", 15)

    row = LoginWindow.query.filter_by(ip=ip).first()
    if row is None:
        row = LoginWindow(ip=ip, window_start=now, count=0)
        db.session.add(row)
    elif now >= row.window_start + timedelta(seconds=window_seconds):
        row.window_start = now
        row.count = 0

    row.count += 1
    db.session.commit()

    if row.count > max_requests:
        window_end = row.window_start + timedelta(seconds=window_seconds)
        return False, max(int((window_end - now).total_seconds()), 1)
    return True, 0

def lockout_remaining(email: str) -> int:
    """Seconds until this email may try again from this IP; 0 when not locked."""
    row = FailedLogin.query.filter_by(email=email, ip=client_ip()).first()
    if not row or not row.locked_until:
        return 0
    remaining = (row.locked_until - datetime.utcnow()).total_seconds()
    return max(int(remaining), 1) if remaining > 0 else 0

def register_failure(email: str) -> bool:
    """Record a failed attempt. Returns True when this attempt triggered a lock."""
    ip = client_ip()
    row = FailedLogin.query.filter_by(email=email, ip=ip).first()
    if row is None:
        row = FailedLogin(email=email, ip=ip, fail_count=0)
        db.session.add(row)

    row.fail_count += 1
    locked_now = row.fail_count >= current_app.config.get("MAX_LOGIN_ATTEMPTS", 5)
    if locked_now:
        row.locked_until = datetime.utcnow() + timedelta(minutes=current_app.config.get("LOCKOUT_MINUTES", 5))
        row.fail_count = 0

    db.session.commit()
    return locked_now

def clear_failures(email: str):
    FailedLogin.query.filter_by(email=email, ip=client_ip()).delete()
    db.session.commit()
