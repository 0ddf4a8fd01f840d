from datetime import datetime
from models.db import db

class BookingLog(db.Model):
    """Append-only trail of booking status transitions."""

    __tablename__ = "booking_logs"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)

    action = db.Column(db.String(60), nullable=False)  # e.g. booking_created, payment_successful
    old_status = db.Column(db.String(20), nullable=True)
    new_status = db.Column(db.String(20), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    performed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    booking = db.relationship("Booking", back_populates="logs")

    def to_dict(self):
        return {
            "id": self.id,
            "action": self.action,
            "old_status": self.old_status,
            "new_status": self.new_status,
            "notes": self.notes,
            "performed_by": self.performed_by,
            "created_at": self.created_at.isoformat(),
        }
