from datetime import datetime
from models.db import db

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, index=True)

    razorpay_order_id = db.Column(db.String(64), unique=True, nullable=False, index=True)
    razorpay_payment_id = db.Column(db.String(64), nullable=True)
    razorpay_signature = db.Column(db.String(128), nullable=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)  # rupees, not paise
    currency = db.Column(db.String(10), nullable=False, default="INR")

    status = db.Column(db.String(20), nullable=False, default="pending")  # pending, successful, failed
    payment_method = db.Column(db.String(30), nullable=True)
    error_description = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    booking = db.relationship("Booking", back_populates="payments")

    def to_dict(self):
        return {
            "id": self.id,
            "booking_id": self.booking_id,
            "razorpay_order_id": self.razorpay_order_id,
            "razorpay_payment_id": self.razorpay_payment_id,
            "amount": float(self.amount),
            "currency": self.currency,
            "status": self.status,
            "payment_method": self.payment_method,
            "error_description": self.error_description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
