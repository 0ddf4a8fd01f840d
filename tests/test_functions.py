import json
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app import create_app
from config import TestConfig
from models import db
from models.booking import Booking
from routes.functions import FUNCTION_PATHS


class NoIntegrationsConfig(TestConfig):
    RAZORPAY_KEY_ID = None
    RAZORPAY_KEY_SECRET = None
    RESEND_API_KEY = None


@pytest.fixture
def bare_client(clock):
    app = create_app(NoIntegrationsConfig, email_dispatcher=lambda _id: None, clock=clock)
    with app.app_context():
        db.create_all()
    yield app.test_client()
    with app.app_context():
        db.drop_all()


@pytest.mark.parametrize("path", FUNCTION_PATHS)
def test_missing_booking_id_is_rejected(client, path):
    resp = client.post(path, json={"amount": 100})

    assert resp.status_code == 400
    body = resp.get_json()
    assert body["success"] is False
    assert body["error_kind"] == "validation_error"


@pytest.mark.parametrize("path", FUNCTION_PATHS)
def test_preflight_allows_any_origin(client, path):
    resp = client.options(path, headers={
        "Origin": "https://bhimsonsagropark.com",
        "Access-Control-Request-Method": "POST",
        "Access-Control-Request-Headers": "content-type, apikey",
    })

    assert resp.status_code == 200
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    allowed = resp.headers["Access-Control-Allow-Headers"].lower()
    assert "content-type" in allowed and "apikey" in allowed


@pytest.mark.parametrize("path", FUNCTION_PATHS)
def test_non_post_methods_are_rejected(client, path):
    resp = client.get(path)

    assert resp.status_code == 400
    assert resp.get_json()["success"] is False


def test_bad_json_body_is_treated_as_empty(client):
    resp = client.post("/generate-qr-code", data="not json", content_type="application/json")

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Missing booking_id"


def test_generate_qr_code(app, client, booking_id):
    resp = client.post("/generate-qr-code", json={"booking_id": booking_id})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["booking_number"].startswith("BAP-20260610-")

    url = urlparse(body["qr_code_url"])
    assert f"{url.scheme}://{url.netloc}{url.path}" == TestConfig.QR_API_URL
    query = parse_qs(url.query)
    assert query["size"] == ["300x300"]
    assert query["bgcolor"] == ["ffffff"]
    assert query["margin"] == ["10"]

    payload = json.loads(query["data"][0])
    assert payload["booking_id"] == booking_id
    assert payload["booking_number"] == body["booking_number"]
    assert payload["visit_date"] == "2026-06-10"
    assert payload["guests"] == 3
    assert payload["verified"] is True
    assert payload["timestamp"].endswith("Z")

    with app.app_context():
        booking = db.session.get(Booking, booking_id)
        assert json.loads(booking.qr_code) == payload
        assert booking.qr_code_url == body["qr_code_url"]


def test_generate_qr_code_twice_overwrites(app, client, booking_id):
    first = client.post("/generate-qr-code", json={"booking_id": booking_id}).get_json()
    with app.app_context():
        first_payload = json.loads(db.session.get(Booking, booking_id).qr_code)

    second = client.post("/generate-qr-code", json={"booking_id": booking_id}).get_json()
    with app.app_context():
        second_payload = json.loads(db.session.get(Booking, booking_id).qr_code)

    assert first["booking_number"] == second["booking_number"]
    assert first_payload["timestamp"] != second_payload["timestamp"]
    assert second["qr_code_url"] != first["qr_code_url"]


def test_generate_qr_code_unknown_booking(client):
    resp = client.post("/generate-qr-code", json={"booking_id": 12345})

    assert resp.status_code == 400
    assert resp.get_json()["error_kind"] == "not_found"


def test_generate_qr_code_rejects_boolean_booking_id(client, booking_id):
    resp = client.post("/generate-qr-code", json={"booking_id": True})

    assert resp.status_code == 400
    assert resp.get_json() == {"success": False, "error": "Invalid booking_id", "error_kind": "validation_error"}


def test_generate_qr_code_survives_commit_failure(app, client, booking_id, monkeypatch):
    def failing_commit():
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(db.session, "commit", failing_commit)

    resp = client.post("/generate-qr-code", json={"booking_id": booking_id})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is True
    assert body["qr_code_url"].startswith(TestConfig.QR_API_URL)
    with app.app_context():
        booking = db.session.get(Booking, booking_id)
        assert booking.qr_code is None
        assert booking.qr_code_url is None


def test_send_confirmation_email(client, mailer, booking_id):
    resp = client.post("/send-confirmation-email", json={"booking_id": booking_id})

    assert resp.status_code == 200
    assert resp.get_json() == {"success": True, "message": "Confirmation email sent", "email_id": "email_1"}

    [message] = mailer.sent
    assert message["to"] == "guest@example.com"
    assert message["subject"].startswith("Booking Confirmed - BAP-20260610-")
    assert message["subject"].endswith(f"| {TestConfig.APP_NAME}")
    assert "Asha Rao" in message["html"]
    assert "Day Pass" in message["html"]
    assert "Wednesday, 10 June 2026" in message["html"]
    # 999 * 2.5 * 1.18 + 50 = 2997.05 -> 2997
    assert "2,997" in message["html"]


def test_integrations_missing(bare_client):
    resp = bare_client.post("/create-razorpay-order", json={"booking_id": 1, "amount": 100})
    assert resp.status_code == 400
    assert resp.get_json()["error_kind"] == "server_misconfigured"

    resp = bare_client.post("/verify-payment", json={
        "razorpay_order_id": "order_1",
        "razorpay_payment_id": "pay_1",
        "razorpay_signature": "sig",
        "booking_id": 1,
    })
    assert resp.get_json()["error_kind"] == "server_misconfigured"

    resp = bare_client.post("/send-confirmation-email", json={"booking_id": 1})
    assert resp.get_json()["error_kind"] == "server_misconfigured"


def test_health(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
