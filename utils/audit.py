import logging
from datetime import datetime, time, timedelta

from flask import request
from sqlalchemy import distinct, func
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.login import UserLogin

logger = logging.getLogger(__name__)


def client_ip() -> str:
    return request.headers.get("X-Forwarded-For", request.remote_addr) or "unknown"


def record_login(user_id: int) -> None:
    """Store a sign-in event; tracking failures never block the login."""
    user_agent = request.headers.get("User-Agent", "")
    row = UserLogin(
        user_id=user_id,
        ip=client_ip(),
        user_agent=user_agent[:255] if user_agent else None,
    )
    db.session.add(row)
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Login tracking failed for user %s", user_id, exc_info=True)


def login_stats(now: datetime) -> dict:
    """Sign-in totals for the admin dashboard, relative to ``now``."""
    day_start = datetime.combine(now.date(), time.min)
    week_start = day_start - timedelta(days=6)
    day_end = day_start + timedelta(days=1)

    def _counts(since):
        total, unique = (
            db.session.query(func.count(UserLogin.id), func.count(distinct(UserLogin.user_id)))
            .filter(UserLogin.created_at >= since, UserLogin.created_at < day_end)
            .one()
        )
        return total, unique

    today_total, today_unique = _counts(day_start)
    week_total, week_unique = _counts(week_start)
    return {
        "total_logins": UserLogin.query.count(),
        "logins_today": today_total,
        "unique_users_today": today_unique,
        "logins_last_7_days": week_total,
        "unique_users_last_7_days": week_unique,
    }
