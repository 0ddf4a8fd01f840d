from datetime import datetime
from models.db import db

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed")

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)
    booking_number = db.Column(db.String(32), unique=True, nullable=False, index=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    pass_id = db.Column(db.Integer, db.ForeignKey("passes.id"), nullable=False, index=True)

    visit_date = db.Column(db.Date, nullable=False, index=True)
    num_adults = db.Column(db.Integer, nullable=False, default=1)
    num_children = db.Column(db.Integer, nullable=False, default=0)

    # frozen at creation, never recomputed
    base_amount = db.Column(db.Numeric(10, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)

    special_requests = db.Column(db.Text, nullable=True)
    dietary_preferences = db.Column(db.String(255), nullable=True)

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    # status values: pending, confirmed, cancelled, completed

    cancelled_at = db.Column(db.DateTime, nullable=True)
    cancellation_reason = db.Column(db.String(255), nullable=True)
    checked_in_at = db.Column(db.DateTime, nullable=True)

    qr_code = db.Column(db.Text, nullable=True)
    qr_code_url = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="bookings")
    park_pass = db.relationship("Pass")
    payments = db.relationship("Payment", back_populates="booking", lazy="dynamic")
    logs = db.relationship("BookingLog", back_populates="booking", lazy="dynamic")

    @property
    def guests(self) -> int:
        return self.num_adults + self.num_children

    def to_dict(self, include_pass=True):
        out = {
            "id": self.id,
            "booking_number": self.booking_number,
            "user_id": self.user_id,
            "pass_id": self.pass_id,
            "visit_date": self.visit_date.isoformat(),
            "num_adults": self.num_adults,
            "num_children": self.num_children,
            "base_amount": float(self.base_amount),
            "tax_amount": float(self.tax_amount),
            "total_amount": float(self.total_amount),
            "special_requests": self.special_requests,
            "dietary_preferences": self.dietary_preferences,
            "status": self.status,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancellation_reason": self.cancellation_reason,
            "checked_in_at": self.checked_in_at.isoformat() if self.checked_in_at else None,
            "qr_code_url": self.qr_code_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_pass and self.park_pass is not None:
            out["pass"] = {
                "name": self.park_pass.name,
                "description": self.park_pass.description,
                "price": float(self.park_pass.price),
                "duration": self.park_pass.duration,
            }
        return out
