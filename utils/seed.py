from decimal import Decimal

from models import db
from models.park_pass import Pass
from models.setting import Setting
from models.user import Role

DEFAULT_ROLES = ["CUSTOMER", "ADMIN"]

DEFAULT_PASSES = [
    {
        "slug": "day-pass",
        "name": "Day Pass",
        "description": "Full-day access to the park, farm trails and play zones.",
        "price": Decimal("999"),
        "duration": "Full day",
        "features": "Park entry\nFarm tour\nPlay zones",
        "sort_order": 1,
    },
    {
        "slug": "adventure-pass",
        "name": "Adventure Pass",
        "description": "Day access plus adventure activities and lunch.",
        "price": Decimal("1499"),
        "duration": "Full day",
        "features": "Park entry\nAdventure activities\nBuffet lunch",
        "sort_order": 2,
    },
    {
        "slug": "water-pass",
        "name": "Water Park Pass",
        "description": "Water rides, wave pool and lockers.",
        "price": Decimal("1299"),
        "duration": "Full day",
        "features": "Water rides\nWave pool\nLocker",
        "sort_order": 3,
    },
]

DEFAULT_SETTINGS = {
    "contact_email": "info@bhimsonsagropark.com",
    "contact_phone": "",
    "opening_hours": "09:00-18:00",
    "bookings_open": True,
    "announcement": "",
}

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()

def seed_passes() -> int:
    existing = {p.slug for p in Pass.query.all()}
    created = 0
    for data in DEFAULT_PASSES:
        if data["slug"] not in existing:
            db.session.add(Pass(**data))
            created += 1
    db.session.commit()
    return created

def seed_settings() -> int:
    existing = {s.key for s in Setting.query.all()}
    created = 0
    for key, value in DEFAULT_SETTINGS.items():
        if key not in existing:
            db.session.add(Setting(key=key, value=value))
            created += 1
    db.session.commit()
    return created
