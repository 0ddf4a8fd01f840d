from __future__ import annotations

import logging
import secrets
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError

from models import Booking, BookingLog, Pass, Payment, User, BOOKING_STATUSES
from services.pricing import PricingRules, PriceBreakdown, calculate_booking_total
from utils.errors import (
    InvalidState,
    NotFound,
    PersistenceError,
    PolicyViolation,
    Unauthenticated,
    ValidationError,
)

logger = logging.getLogger(__name__)

UPCOMING_STATUSES = ("pending", "confirmed")
REVENUE_STATUSES = ("confirmed", "completed")


def generate_booking_number(visit_date: date) -> str:
    return f"BAP-{visit_date:%Y%m%d}-{secrets.token_hex(3).upper()}"


def coerce_id(value, label: str = "booking_id") -> int:
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {label}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label}")


def parse_date(value, label: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid {label}. Use YYYY-MM-DD")


class BookingStore:
    """Reads and writes bookings, always pairing status changes with a log row.

    The SQLAlchemy session and settings are passed in; ``clock`` returns a
    naive UTC datetime and exists so the cancellation window can be tested.
    """

    def __init__(self, session, settings, clock: Optional[Callable[[], datetime]] = None):
        self.session = session
        self.settings = settings
        self.rules = PricingRules.from_settings(settings)
        self._clock = clock or datetime.utcnow

    # ---------- helpers ----------
    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self.now().date()

    def commit(self, what: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Database write failed while trying to %s", what)
            raise PersistenceError(f"Failed to {what}") from exc

    def add_log(self, booking: Booking, action: str, old_status, new_status, notes=None, performed_by=None):
        row = BookingLog(
            booking=booking,
            action=action,
            old_status=old_status,
            new_status=new_status,
            notes=notes,
            performed_by=performed_by,
        )
        self.session.add(row)
        return row

    def load(self, booking_id, user: Optional[User] = None, for_update: bool = False) -> Booking:
        q = self.session.query(Booking).filter(Booking.id == coerce_id(booking_id))
        if for_update:
            q = q.with_for_update()
        booking = q.first()
        if booking is None or (user is not None and booking.user_id != user.id):
            raise NotFound("Booking not found")
        return booking

    # ---------- passes ----------
    def active_passes(self) -> List[Pass]:
        return (
            self.session.query(Pass)
            .filter_by(is_active=True)
            .order_by(Pass.sort_order.asc(), Pass.id.asc())
            .all()
        )

    def get_pass(self, pass_id, active_only: bool = True) -> Pass:
        park_pass = self.session.get(Pass, coerce_id(pass_id, "pass_id"))
        if park_pass is None or (active_only and not park_pass.is_active):
            raise NotFound("Pass not found")
        return park_pass

    # ---------- create ----------
    def _check_visit_date(self, visit_date: date) -> None:
        today_start = datetime.combine(self.today(), time.min)
        earliest = today_start + timedelta(hours=self.settings.min_advance_hours)
        latest = self.today() + timedelta(days=self.settings.advance_booking_days)
        if datetime.combine(visit_date, time.min) < earliest or visit_date > latest:
            raise ValidationError("Selected visit date is not available for booking")

    def create_booking(
        self,
        user: Optional[User],
        pass_id,
        visit_date,
        num_adults,
        num_children=0,
        notes: Optional[str] = None,
        dietary_preferences: Optional[str] = None,
    ) -> tuple[Booking, PriceBreakdown]:
        if user is None:
            raise Unauthenticated("User not logged in")

        try:
            adults = int(num_adults)
            children = int(num_children or 0)
        except (TypeError, ValueError):
            raise ValidationError("Guest counts must be whole numbers")
        if adults < 1:
            raise ValidationError("At least one adult is required")
        if children < 0:
            raise ValidationError("Children count cannot be negative")
        if adults + children > self.settings.max_guests_per_booking:
            raise ValidationError(
                f"A booking can include at most {self.settings.max_guests_per_booking} guests"
            )

        visit = parse_date(visit_date, "visit_date")
        self._check_visit_date(visit)

        park_pass = self.get_pass(pass_id)
        totals = calculate_booking_total(park_pass.price, adults, children, self.rules)

        booking = Booking(
            booking_number=generate_booking_number(visit),
            user_id=user.id,
            pass_id=park_pass.id,
            visit_date=visit,
            num_adults=adults,
            num_children=children,
            base_amount=totals.subtotal,
            tax_amount=totals.tax,
            total_amount=totals.total,
            special_requests=(notes or "").strip() or None,
            dietary_preferences=(dietary_preferences or "").strip() or None,
            status="pending",
        )
        self.session.add(booking)
        self.add_log(
            booking,
            "booking_created",
            None,
            "pending",
            notes=f"Booking created for {adults} adults, {children} children",
            performed_by=user.id,
        )
        self.commit("create booking")
        logger.info("Booking %s created for user %s", booking.booking_number, user.id)
        return booking, totals

    # ---------- status changes ----------
    def hours_until_visit(self, booking: Booking) -> float:
        visit_start = datetime.combine(booking.visit_date, time.min)
        return (visit_start - self.now()).total_seconds() / 3600

    def cancel_booking(self, booking_id, reason: str = "", user: Optional[User] = None) -> Booking:
        booking = self.load(booking_id, user=user, for_update=True)

        if booking.status == "cancelled":
            raise InvalidState("Booking is already cancelled")
        if booking.status == "completed":
            raise InvalidState("Cannot cancel a completed booking")

        window = self.settings.cancellation_hours
        if self.hours_until_visit(booking) <= window:
            raise PolicyViolation(
                f"Bookings can only be cancelled {window} hours before the visit date"
            )

        old_status = booking.status
        booking.status = "cancelled"
        booking.cancelled_at = self.now()
        booking.cancellation_reason = reason or None
        self.add_log(
            booking,
            "booking_cancelled",
            old_status,
            "cancelled",
            notes=reason or "Cancelled by user",
            performed_by=user.id if user else None,
        )
        self.commit("cancel booking")
        logger.info("Booking %s cancelled", booking.booking_number)
        return booking

    def update_status(self, booking_id, new_status: str, actor: User, notes: str = "") -> Booking:
        if new_status not in BOOKING_STATUSES:
            raise ValidationError(f"Invalid status. Use one of: {', '.join(BOOKING_STATUSES)}")

        booking = self.load(booking_id, for_update=True)
        old_status = booking.status
        booking.status = new_status
        if new_status == "cancelled":
            booking.cancelled_at = self.now()
            booking.cancellation_reason = notes or None
        if new_status == "completed":
            booking.checked_in_at = self.now()

        self.add_log(
            booking,
            f"status_changed_to_{new_status}",
            old_status,
            new_status,
            notes=notes or None,
            performed_by=actor.id,
        )
        self.commit("update booking status")
        return booking

    # ---------- reads ----------
    def latest_payment(self, booking_id) -> Optional[Payment]:
        return (
            self.session.query(Payment)
            .filter_by(booking_id=coerce_id(booking_id))
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .first()
        )

    def booking_logs(self, booking_id) -> List[BookingLog]:
        return (
            self.session.query(BookingLog)
            .filter_by(booking_id=coerce_id(booking_id))
            .order_by(BookingLog.created_at.desc(), BookingLog.id.desc())
            .all()
        )

    def list_user_bookings(self, user: User, status=None) -> List[Booking]:
        q = self.session.query(Booking).filter(Booking.user_id == user.id)
        if status:
            if isinstance(status, (list, tuple, set)):
                q = q.filter(Booking.status.in_(list(status)))
            else:
                q = q.filter(Booking.status == status)
        return q.order_by(Booking.created_at.desc(), Booking.id.desc()).all()

    def upcoming_bookings(self, user: User) -> List[Booking]:
        return (
            self.session.query(Booking)
            .filter(
                Booking.user_id == user.id,
                Booking.status.in_(UPCOMING_STATUSES),
                Booking.visit_date >= self.today(),
            )
            .order_by(Booking.visit_date.asc())
            .all()
        )

    def past_bookings(self, user: User) -> List[Booking]:
        return (
            self.session.query(Booking)
            .filter(
                Booking.user_id == user.id,
                or_(Booking.visit_date < self.today(), Booking.status == "completed"),
            )
            .order_by(Booking.visit_date.desc())
            .all()
        )

    def list_bookings(self, filters: Dict) -> tuple[List[Booking], int]:
        """Admin listing with equality, range and substring filters.

        Pagination is offset/limit only; rows inserted between requests can
        shift page boundaries.
        """
        q = (
            self.session.query(Booking)
            .join(User, Booking.user_id == User.id)
            .join(Pass, Booking.pass_id == Pass.id)
        )

        if filters.get("status"):
            q = q.filter(Booking.status == filters["status"])

        if filters.get("pass_slug"):
            q = q.filter(Pass.slug == filters["pass_slug"])

        if filters.get("date_from"):
            q = q.filter(Booking.visit_date >= parse_date(filters["date_from"], "date_from"))
        if filters.get("date_to"):
            q = q.filter(Booking.visit_date <= parse_date(filters["date_to"], "date_to"))

        if filters.get("payment_status"):
            latest = (
                self.session.query(Payment.booking_id, func.max(Payment.id).label("payment_id"))
                .group_by(Payment.booking_id)
                .subquery()
            )
            q = (
                q.join(latest, latest.c.booking_id == Booking.id)
                .join(Payment, Payment.id == latest.c.payment_id)
                .filter(Payment.status == filters["payment_status"])
            )

        search = (filters.get("search") or "").strip()
        if search:
            pattern = f"%{search}%"
            q = q.filter(or_(
                User.full_name.ilike(pattern),
                User.email.ilike(pattern),
                Booking.booking_number.ilike(pattern),
            ))

        total = q.count()

        limit = filters.get("limit") or self.settings.admin_page_size
        offset = filters.get("offset") or 0
        rows = (
            q.order_by(Booking.created_at.desc(), Booking.id.desc())
            .offset(max(0, int(offset)))
            .limit(max(1, min(int(limit), 200)))
            .all()
        )
        return rows, total

    def bookings_by_date(self, start, end) -> Dict[str, Dict]:
        start_date = parse_date(start, "start")
        end_date = parse_date(end, "end")
        rows = (
            self.session.query(Booking.visit_date, Booking.total_amount)
            .filter(
                Booking.visit_date >= start_date,
                Booking.visit_date <= end_date,
                Booking.status.in_(REVENUE_STATUSES),
            )
            .all()
        )

        by_date: Dict[str, Dict] = {}
        for visit_date, amount in rows:
            bucket = by_date.setdefault(visit_date.isoformat(), {"count": 0, "revenue": 0.0})
            bucket["count"] += 1
            bucket["revenue"] += float(amount)
        return by_date

    def dashboard_stats(self) -> Dict:
        counts = dict(
            self.session.query(Booking.status, func.count(Booking.id))
            .group_by(Booking.status)
            .all()
        )
        revenue = (
            self.session.query(func.coalesce(func.sum(Payment.amount), 0))
            .filter(Payment.status == "successful")
            .scalar()
        )
        todays_visits = (
            self.session.query(func.count(Booking.id))
            .filter(Booking.visit_date == self.today(), Booking.status.in_(REVENUE_STATUSES))
            .scalar()
        )
        return {
            "total_bookings": sum(counts.values()),
            "pending_bookings": counts.get("pending", 0),
            "confirmed_bookings": counts.get("confirmed", 0),
            "cancelled_bookings": counts.get("cancelled", 0),
            "completed_bookings": counts.get("completed", 0),
            "total_revenue": float(revenue or 0),
            "todays_visits": todays_visits or 0,
            "total_users": self.session.query(func.count(User.id)).scalar() or 0,
        }

    def booking_counts_for(self, user_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(user_ids)
        if not ids:
            return {}
        return dict(
            self.session.query(Booking.user_id, func.count(Booking.id))
            .filter(Booking.user_id.in_(ids))
            .group_by(Booking.user_id)
            .all()
        )
