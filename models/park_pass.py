from datetime import datetime
from models.db import db

class Pass(db.Model):
    __tablename__ = "passes"

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(80), unique=True, nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    price = db.Column(db.Numeric(10, 2), nullable=False)  # per adult, whole rupees
    duration = db.Column(db.String(60), nullable=True)    # e.g. "Full day"
    features = db.Column(db.Text, nullable=True)          # newline separated

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    sort_order = db.Column(db.Integer, default=0, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "price": float(self.price),
            "duration": self.duration,
            "features": [f for f in (self.features or "").splitlines() if f.strip()],
            "is_active": self.is_active,
            "sort_order": self.sort_order,
        }
