from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from flask import render_template

from models import db
from models.password_reset import PasswordResetToken
from models.user import User
from security.password import hash_password
from security.session import hash_token, revoke_all_sessions
from services.mailer import ResendMailer
from utils.errors import NotFound, ServerMisconfigured, UpstreamError, ValidationError

logger = logging.getLogger(__name__)


def request_password_reset(email: str, mailer: Optional[ResendMailer], settings, minutes: int) -> None:
    """
    Email a single-use reset link to ``email`` if it belongs to an account.

    Callers answer the same way whether or not the account exists. Earlier
    unused tokens for the user stop working once a new one is issued.
    """
    if mailer is None:
        raise ServerMisconfigured("Resend API key not configured")

    user = User.query.filter_by(email=email).first()
    if user is None:
        logger.info("Password reset requested for unknown email")
        return

    now = datetime.utcnow()
    (
        PasswordResetToken.query
        .filter_by(user_id=user.id, used_at=None)
        .update({"used_at": now}, synchronize_session=False)
    )
    raw_token = secrets.token_urlsafe(32)
    db.session.add(PasswordResetToken(
        user_id=user.id,
        token_hash=hash_token(raw_token),
        expires_at=now + timedelta(minutes=minutes),
    ))
    db.session.commit()

    reset_url = f"{settings.app_url}/reset-password.html?{urlencode({'token': raw_token})}"
    html = render_template(
        "email/password_reset.html",
        app_name=settings.app_name,
        customer_name=user.full_name or "Guest",
        reset_url=reset_url,
        minutes=minutes,
    )
    try:
        mailer.send(user.email, f"Reset your password | {settings.app_name}", html)
    except UpstreamError:
        logger.exception("Failed to send password reset email to user %s", user.id)


def reset_password(raw_token: str, new_password: str) -> User:
    """Consume a reset token, set the new password and sign out everywhere."""
    if not raw_token or not isinstance(raw_token, str):
        raise ValidationError("Missing token")

    token = PasswordResetToken.query.filter_by(token_hash=hash_token(raw_token)).first()
    if token is None:
        raise NotFound("Invalid or expired reset link")

    now = datetime.utcnow()
    if token.used_at is not None or token.expires_at <= now:
        raise ValidationError("Invalid or expired reset link")

    user = token.user
    user.password_hash = hash_password(new_password)
    user.password_changed_at = now
    token.used_at = now
    db.session.commit()
    revoke_all_sessions(user.id)
    logger.info("Password reset for user %s", user.id)
    return user
