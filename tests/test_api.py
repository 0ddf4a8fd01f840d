from datetime import date, datetime

from conftest import csrf_headers, login, make_booking, make_user, pass_id
from models import db
from models.booking import Booking
from models.login import UserLogin
from models.user import User
from utils.deps import booking_store


def test_list_passes(client):
    resp = client.get("/passes")

    assert resp.status_code == 200
    slugs = [p["slug"] for p in resp.get_json()["passes"]]
    assert slugs == ["day-pass", "adventure-pass", "water-pass"]


def test_unknown_pass(client):
    resp = client.get("/passes/999")

    assert resp.status_code == 404
    assert resp.get_json()["error_kind"] == "not_found"


def test_create_booking_route(app, client, user_id):
    login(client)
    resp = client.post("/bookings", json={
        "pass_id": pass_id(app),
        "visit_date": "2026-06-10",
        "num_adults": 2,
        "num_children": 1,
        "special_requests": "Wheelchair access",
    }, headers=csrf_headers(client))

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["booking"]["status"] == "pending"
    assert body["booking"]["pass"]["name"] == "Day Pass"
    assert body["totals"]["total"] == 2997.0

    resp = client.get("/bookings/me")
    assert [b["id"] for b in resp.get_json()["bookings"]] == [body["booking"]["id"]]


def test_create_booking_requires_login(client):
    resp = client.post("/bookings", json={"pass_id": 1, "visit_date": "2026-06-10", "num_adults": 1})

    assert resp.status_code == 401


def test_booking_validation_error_status(app, client, user_id):
    login(client)
    resp = client.post("/bookings", json={
        "pass_id": pass_id(app),
        "visit_date": "2026-06-01",
        "num_adults": 1,
    }, headers=csrf_headers(client))

    assert resp.status_code == 400
    assert resp.get_json()["error_kind"] == "validation_error"


def test_bookings_are_private(app, client, booking_id):
    make_user(app, email="other@example.com")
    login(client, email="other@example.com")

    assert client.get(f"/bookings/{booking_id}").status_code == 404
    resp = client.post(f"/bookings/{booking_id}/cancel", json={}, headers=csrf_headers(client))
    assert resp.status_code == 404


def test_cancel_route(app, client, booking_id):
    login(client)
    resp = client.post(f"/bookings/{booking_id}/cancel", json={"reason": "Rain"}, headers=csrf_headers(client))

    assert resp.status_code == 200
    assert resp.get_json()["booking"]["status"] == "cancelled"

    resp = client.post(f"/bookings/{booking_id}/cancel", json={}, headers=csrf_headers(client))
    assert resp.status_code == 409
    assert resp.get_json()["error_kind"] == "invalid_state"


def test_status_filter_on_my_bookings(app, client, user_id):
    first = make_booking(app, user_id)
    second = make_booking(app, user_id, visit_date=date(2026, 6, 12))
    with app.app_context():
        db.session.get(Booking, second).status = "confirmed"
        db.session.commit()

    login(client)
    resp = client.get("/bookings/me?status=confirmed")
    assert [b["id"] for b in resp.get_json()["bookings"]] == [second]

    resp = client.get("/bookings/me?status=pending,confirmed")
    assert {b["id"] for b in resp.get_json()["bookings"]} == {first, second}

    resp = client.get("/bookings/upcoming")
    assert [b["id"] for b in resp.get_json()["bookings"]] == [first, second]


def test_admin_requires_admin_role(client, user_id):
    login(client)

    resp = client.get("/admin/bookings")
    assert resp.status_code == 403
    assert resp.get_json()["error_kind"] == "forbidden"


def test_admin_booking_list_and_status_update(app, client, user_id, booking_id):
    make_user(app, email="admin@example.com", full_name="Park Admin", admin=True)
    second = make_booking(app, user_id, visit_date=date(2026, 6, 20), slug="water-pass")
    login(client, email="admin@example.com")

    resp = client.get("/admin/bookings?pass_slug=water-pass")
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["total"] == 1
    assert body["bookings"][0]["id"] == second
    assert body["bookings"][0]["user_email"] == "guest@example.com"

    resp = client.get("/admin/bookings?limit=1&offset=1")
    assert resp.get_json()["total"] == 2
    assert len(resp.get_json()["bookings"]) == 1

    resp = client.post(
        f"/admin/bookings/{booking_id}/status",
        json={"status": "confirmed", "notes": "Paid at counter"},
        headers=csrf_headers(client),
    )
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["status"] == "confirmed"

    resp = client.get(f"/admin/bookings/{booking_id}")
    detail = resp.get_json()
    assert detail["profile"]["email"] == "guest@example.com"
    assert [log["action"] for log in detail["logs"]] == ["status_changed_to_confirmed", "booking_created"]

    resp = client.get("/admin/bookings?status=confirmed")
    assert [b["id"] for b in resp.get_json()["bookings"]] == [booking_id]

    stats = client.get("/admin/stats").get_json()["stats"]
    assert stats["total_bookings"] == 2
    assert stats["confirmed_bookings"] == 1
    assert stats["pending_bookings"] == 1


def test_admin_rejects_unknown_status(app, client, booking_id):
    make_user(app, email="admin@example.com", admin=True)
    login(client, email="admin@example.com")

    resp = client.post(
        f"/admin/bookings/{booking_id}/status",
        json={"status": "refunded"},
        headers=csrf_headers(client),
    )
    assert resp.status_code == 400


def test_admin_toggle_pass(app, client):
    make_user(app, email="admin@example.com", admin=True)
    login(client, email="admin@example.com")
    water = pass_id(app, "water-pass")

    resp = client.post(f"/admin/passes/{water}/toggle", json={}, headers=csrf_headers(client))
    assert resp.get_json()["pass"]["is_active"] is False
    assert "water-pass" not in [p["slug"] for p in client.get("/passes").get_json()["passes"]]


def test_admin_pass_price_must_be_finite(app, client):
    make_user(app, email="admin@example.com", admin=True)
    login(client, email="admin@example.com")
    day = pass_id(app, "day-pass")

    for price in ("NaN", "Infinity"):
        resp = client.patch(f"/admin/passes/{day}", json={"price": price}, headers=csrf_headers(client))
        assert resp.status_code == 400
        assert resp.get_json()["error_kind"] == "validation_error"

    resp = client.get("/passes")
    assert [p["price"] for p in resp.get_json()["passes"] if p["slug"] == "day-pass"] == [999.0]


def test_admin_revenue_defaults_to_park_clock(app, client, clock, user_id, booking_id):
    admin_id = make_user(app, email="admin@example.com", admin=True)
    with app.app_context():
        admin = db.session.get(User, admin_id)
        booking_store().update_status(booking_id, "confirmed", admin)
    clock.now = datetime(2026, 6, 15, 9, 0, 0)
    login(client, email="admin@example.com")

    resp = client.get("/admin/revenue")

    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"2026-06-10": {"count": 1, "revenue": 2997.0}}


def test_admin_settings(app, client):
    admin_id = make_user(app, email="admin@example.com", admin=True)
    login(client, email="admin@example.com")

    resp = client.get("/admin/settings")
    assert resp.status_code == 200
    settings = resp.get_json()["settings"]
    assert settings["bookings_open"] is True
    assert settings["opening_hours"] == "09:00-18:00"

    resp = client.patch(
        "/admin/settings/opening_hours",
        json={"value": "08:30-19:00"},
        headers=csrf_headers(client),
    )
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["message"] == "Settings updated successfully"
    assert body["setting"]["key"] == "opening_hours"
    assert body["setting"]["value"] == "08:30-19:00"
    assert body["setting"]["updated_by"] == admin_id
    assert body["setting"]["updated_at"] == "2026-06-01T10:00:00"

    assert client.get("/admin/settings").get_json()["settings"]["opening_hours"] == "08:30-19:00"


def test_admin_settings_rejects_unknown_key_and_missing_value(app, client):
    make_user(app, email="admin@example.com", admin=True)
    login(client, email="admin@example.com")

    resp = client.patch("/admin/settings/theme", json={"value": "dark"}, headers=csrf_headers(client))
    assert resp.status_code == 404
    assert resp.get_json()["error_kind"] == "not_found"

    resp = client.patch("/admin/settings/announcement", json={}, headers=csrf_headers(client))
    assert resp.status_code == 400
    assert resp.get_json()["error_kind"] == "validation_error"


def test_admin_settings_require_admin(client, user_id):
    login(client)

    assert client.get("/admin/settings").status_code == 403
    resp = client.patch("/admin/settings/announcement", json={"value": "Hi"}, headers=csrf_headers(client))
    assert resp.status_code == 403


def test_admin_login_stats(app, client, user_id):
    admin_id = make_user(app, email="admin@example.com", admin=True)
    with app.app_context():
        for uid, when in [
            (user_id, datetime(2026, 6, 1, 8, 0)),
            (user_id, datetime(2026, 6, 1, 9, 30)),
            (admin_id, datetime(2026, 5, 29, 12, 0)),
            (user_id, datetime(2026, 5, 20, 12, 0)),
        ]:
            db.session.add(UserLogin(user_id=uid, ip="10.0.0.1", created_at=when))
        db.session.commit()
    login(client, email="admin@example.com")

    resp = client.get("/admin/logins/stats")

    assert resp.status_code == 200
    assert resp.get_json()["stats"] == {
        # the admin's own sign-in above is stamped with the real time
        "total_logins": 5,
        "logins_today": 2,
        "unique_users_today": 1,
        "logins_last_7_days": 3,
        "unique_users_last_7_days": 2,
    }
