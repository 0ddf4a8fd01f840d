from unittest import mock

import pytest
import requests

from app import create_app
from config import TestConfig
from conftest import KEY_ID, KEY_SECRET, make_booking, make_user, sign
from models import db
from services.mailer import ResendMailer
from services.notifications import send_confirmation_email
from services.razorpay_gateway import RazorpayGateway
from utils.deps import booking_store
from utils.errors import UpstreamError, ValidationError
from utils.seed import seed_passes, seed_roles


def _response(status_code, payload):
    resp = mock.Mock(status_code=status_code, ok=status_code < 400)
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


def test_resend_mailer_posts_message():
    mailer = ResendMailer("re_key", "https://api.resend.test/emails", "Park <bookings@park.test>")

    with mock.patch.object(mailer.http, "post", return_value=_response(200, {"id": "msg_1"})) as post:
        assert mailer.send("guest@example.com", "Hello", "<p>Hi</p>") == "msg_1"

    args, kwargs = post.call_args
    assert args == ("https://api.resend.test/emails",)
    assert kwargs["json"] == {
        "from": "Park <bookings@park.test>",
        "to": ["guest@example.com"],
        "subject": "Hello",
        "html": "<p>Hi</p>",
    }
    assert kwargs["headers"] == {"Authorization": "Bearer re_key"}
    assert kwargs["timeout"] == 10


def test_resend_mailer_provider_error():
    mailer = ResendMailer("re_key", "https://api.resend.test/emails", "bookings@park.test")

    failure = _response(422, {"message": "Invalid `to` field"})
    with mock.patch.object(mailer.http, "post", return_value=failure):
        with pytest.raises(UpstreamError, match="Invalid `to` field"):
            mailer.send("nobody", "Hello", "<p>Hi</p>")


def test_resend_mailer_network_error():
    mailer = ResendMailer("re_key", "https://api.resend.test/emails", "bookings@park.test")

    with mock.patch.object(mailer.http, "post", side_effect=requests.ConnectionError("refused")):
        with pytest.raises(UpstreamError, match="Email send failed"):
            mailer.send("guest@example.com", "Hello", "<p>Hi</p>")


def test_send_confirmation_requires_booking_id(app, mailer, ctx):
    with pytest.raises(ValidationError):
        send_confirmation_email(booking_store(), mailer, {})
    assert mailer.sent == []


def test_confirmation_includes_qr_when_generated(app, client, mailer, booking_id):
    qr_url = client.post("/generate-qr-code", json={"booking_id": booking_id}).get_json()["qr_code_url"]

    with app.app_context():
        send_confirmation_email(booking_store(), mailer, {"booking_id": booking_id})

    html = mailer.sent[0]["html"]
    assert "QR Code" in html
    assert f"{TestConfig.APP_URL}/dashboard.html" in html
    assert qr_url.split("?")[0] in html


@pytest.fixture
def eager_app(clock, razorpay_client, mailer):
    # no email_dispatcher: confirmations go through the Celery task, run eagerly
    app = create_app(
        TestConfig,
        gateway=RazorpayGateway(KEY_ID, KEY_SECRET, client=razorpay_client),
        mailer=mailer,
        clock=clock,
    )
    with app.app_context():
        db.create_all()
        seed_roles()
        seed_passes()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


def test_verified_payment_sends_email_through_task(eager_app, mailer):
    client = eager_app.test_client()
    user_id = make_user(eager_app)
    booking_id = make_booking(eager_app, user_id)

    order = client.post("/create-razorpay-order", json={"booking_id": booking_id, "amount": 2997}).get_json()
    order_id = order["order"]["id"]
    resp = client.post("/verify-payment", json={
        "razorpay_order_id": order_id,
        "razorpay_payment_id": "pay_task_1",
        "razorpay_signature": sign(order_id, "pay_task_1"),
        "booking_id": booking_id,
    })

    assert resp.status_code == 200
    [message] = mailer.sent
    assert message["to"] == "guest@example.com"
    assert message["subject"].startswith("Booking Confirmed - ")
    assert "celery" in eager_app.extensions
