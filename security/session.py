import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.session import Session
from utils.audit import client_ip

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def create_session(user_id: int) -> str:
    """
    Store a new server-side session and return the raw cookie token.
    Only its hash is persisted.
    """
    raw_token = secrets.token_urlsafe(32)
    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 28800)

    db.session.add(Session(
        user_id=user_id,
        token_hash=hash_token(raw_token),
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime),
        ip=client_ip(),
    ))
    db.session.commit()
    return raw_token

def get_session_from_request():
    raw_token = request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "park_session"))
    if not raw_token:
        return None

    sess = Session.query.filter_by(token_hash=hash_token(raw_token), revoked_at=None).first()
    if not sess:
        return None

    now = datetime.utcnow()
    idle_seconds = current_app.config.get("IDLE_TIMEOUT_SECONDS", 1800)
    if sess.expires_at <= now or sess.last_seen_at + timedelta(seconds=idle_seconds) <= now:
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess

def revoke_session(raw_token: str) -> bool:
    if not raw_token:
        return False
    sess = Session.query.filter_by(token_hash=hash_token(raw_token), revoked_at=None).first()
    if not sess:
        return False
    sess.revoked_at = datetime.utcnow()
    db.session.commit()
    return True

def revoke_all_sessions(user_id: int) -> int:
    now = datetime.utcnow()
    count = (
        Session.query
        .filter_by(user_id=user_id, revoked_at=None)
        .update({"revoked_at": now}, synchronize_session=False)
    )
    db.session.commit()
    return count
