from __future__ import annotations

from fastapi.testclient import TestClient

from codecombat.main import create_app
from codecombat.services.notifier import Notifier
from codecombat.services.validation import BRANCHES

from conftest import ANA, FailingTransport, register


def test_register_then_duplicate(client):
    r = register(client)
    assert r.status_code == 201
    body = r.json()
    assert body["success"] is True
    assert body["message"] == "Registration successful"
    assert body["data"] == dict(ANA, id=1)
    assert r.headers["X-Request-ID"]

    r = register(client)
    assert r.status_code == 409
    assert r.json() == {"success": False, "message": "Email already registered", "field": "email"}

    assert client.get("/api/registration/count").json() == {"success": True, "count": 1}


def test_duplicate_phone_reported_before_roll_number(client):
    register(client)
    r = register(client, email="other@x.com")
    assert r.status_code == 409
    assert r.json()["field"] == "phone"

    r = register(client, email="other@x.com", phone="9000000000")
    assert r.json()["field"] == "rollNumber"
    assert r.json()["message"] == "Roll number already registered"


def test_confirmation_email_sent_after_registration(client, transport):
    register(client)
    assert len(transport.messages) == 1
    message = transport.messages[0]
    assert message["To"] == ANA["email"]
    assert message["Subject"] == "Registration Confirmed - CODECOMBAT"
    html_part = message.get_body(preferencelist=("html",)).get_content()
    assert "Ana Lee" in html_part
    assert "21CS045" in html_part


def test_mail_failure_does_not_fail_registration(settings, database):
    app = create_app(settings, database=database, notifier=Notifier(settings, transport=FailingTransport()))
    client = TestClient(app)

    r = register(client)
    assert r.status_code == 201
    assert client.get("/api/registration/count").json()["count"] == 1


def test_invalid_phone_is_rejected(client, transport):
    r = register(client, phone="12345")
    assert r.status_code == 400
    assert r.json() == {
        "success": False,
        "message": "Phone number must be exactly 10 digits",
        "field": "phone",
    }
    assert client.get("/api/registration/count").json()["count"] == 0
    assert transport.messages == []


def test_missing_fields_use_form_order(client):
    r = client.post("/api/registration/register", json={})
    assert r.status_code == 400
    assert r.json()["field"] == "name"
    assert r.json()["message"] == "Name is required"


def test_non_string_field_rejected_as_validation_error(client):
    r = register(client, phone=9876543210)
    assert r.status_code == 400
    assert r.json()["success"] is False
    assert r.json()["field"] == "phone"


def test_check_email(client):
    assert client.get("/api/registration/check/ana@x.com").json() == {"success": True, "exists": False}
    register(client)
    assert client.get("/api/registration/check/ana@x.com").json() == {"success": True, "exists": True}


def test_branches(client):
    body = client.get("/api/registration/branches").json()
    assert body["success"] is True
    assert body["branches"] == BRANCHES
    assert "Computer Science & Engineering" in body["branches"]


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "OK"
    assert r.json()["message"] == "Server is running"
    assert "timestamp" in r.json()


def test_unknown_route(client):
    r = client.get("/api/nope")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Route not found"}


def test_email_uniqueness_ignores_case(client):
    register(client)
    r = register(client, email="  ANA@X.COM ", phone="9000000000", rollNumber="99")
    assert r.status_code == 409
    assert r.json() == {"success": False, "message": "Email already registered", "field": "email"}
    assert client.get("/api/registration/count").json()["count"] == 1
    assert client.get("/api/registration/check/Ana@X.com").json()["exists"] is True


def test_email_stored_lower_cased(client):
    r = register(client, email="Ana.Lee@X.COM")
    assert r.json()["data"]["email"] == "ana.lee@x.com"
