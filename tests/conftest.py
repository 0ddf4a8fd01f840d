from datetime import date, datetime

import pytest

from app import create_app
from config import TestConfig
from models import db
from models.park_pass import Pass
from models.user import Role, User
from security.password import hash_password
from services.razorpay_gateway import RazorpayGateway, compute_signature
from utils.deps import booking_store
from utils.seed import seed_passes, seed_roles, seed_settings

KEY_ID = TestConfig.RAZORPAY_KEY_ID
KEY_SECRET = TestConfig.RAZORPAY_KEY_SECRET
PASSWORD = "parkpass123"


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeOrders:
    def __init__(self):
        self.created = []

    def create(self, data):
        self.created.append(data)
        return {
            "id": f"order_test_{len(self.created)}",
            "entity": "order",
            "amount": data["amount"],
            "currency": data["currency"],
            "receipt": data["receipt"],
            "status": "created",
        }


class FakeRazorpayClient:
    def __init__(self):
        self.order = FakeOrders()


class FakeMailer:
    def __init__(self):
        self.sent = []

    def send(self, to_email, subject, html):
        self.sent.append({"to": to_email, "subject": subject, "html": html})
        return f"email_{len(self.sent)}"


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 6, 1, 10, 0, 0))


@pytest.fixture
def razorpay_client():
    return FakeRazorpayClient()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def dispatched():
    return []


@pytest.fixture
def app(clock, razorpay_client, mailer, dispatched):
    app = create_app(
        TestConfig,
        gateway=RazorpayGateway(KEY_ID, KEY_SECRET, client=razorpay_client),
        mailer=mailer,
        email_dispatcher=dispatched.append,
        clock=clock,
    )
    with app.app_context():
        db.create_all()
        seed_roles()
        seed_settings()
        seed_passes()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield


def make_user(app, email="guest@example.com", full_name="Asha Rao", phone="9876543210", admin=False):
    with app.app_context():
        user = User(
            email=email,
            password_hash=hash_password(PASSWORD),
            full_name=full_name,
            phone_number=phone,
        )
        names = ["CUSTOMER", "ADMIN"] if admin else ["CUSTOMER"]
        user.roles.extend(Role.query.filter(Role.name.in_(names)).all())
        db.session.add(user)
        db.session.commit()
        return user.id


def pass_id(app, slug="day-pass"):
    with app.app_context():
        return Pass.query.filter_by(slug=slug).first().id


def make_booking(app, user_id, visit_date=date(2026, 6, 10), adults=2, children=1, slug="day-pass"):
    with app.app_context():
        user = db.session.get(User, user_id)
        booking, _ = booking_store().create_booking(user, pass_id(app, slug), visit_date, adults, children)
        return booking.id


def login(client, email="guest@example.com", password=PASSWORD):
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return resp


def csrf_headers(client):
    return {"X-CSRF-Token": client.get_cookie("csrf_token").value}


def sign(order_id, payment_id, secret=KEY_SECRET):
    return compute_signature(secret, order_id, payment_id)


@pytest.fixture
def user_id(app):
    return make_user(app)


@pytest.fixture
def booking_id(app, user_id):
    return make_booking(app, user_id)
