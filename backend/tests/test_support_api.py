from __future__ import annotations

from fastapi.testclient import TestClient

from codecombat.main import create_app
from codecombat.services.notifier import Notifier

from conftest import FailingTransport

FORM = {
    "name": "Ana Lee",
    "email": "ana@x.com",
    "subject": "Team size",
    "message": "Can two people register as one team?",
}


def test_contact_forwards_to_support_inbox(client, transport):
    r = client.post("/api/support/contact", json=FORM)
    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "message": "Your message has been sent successfully. We will get back to you soon.",
    }

    message, = transport.messages
    ticket_id = message["X-Ticket-ID"]
    assert len(ticket_id) == 6
    assert message["To"] == "inbox@codecombat.live"
    assert message["Reply-To"] == FORM["email"]
    assert message["Subject"] == f"[Ticket #{ticket_id}] Team size"


def test_contact_validation(client, transport):
    r = client.post("/api/support/contact", json=dict(FORM, message="hi"))
    assert r.status_code == 400
    assert r.json()["field"] == "message"
    assert transport.messages == []


def test_contact_reports_delivery_failure(settings, database):
    app = create_app(settings, database=database, notifier=Notifier(settings, transport=FailingTransport()))
    r = TestClient(app).post("/api/support/contact", json=FORM)
    assert r.status_code == 500
    assert r.json()["success"] is False
    assert "support@codecombat.live" in r.json()["message"]
