from __future__ import annotations

import pytest

from codecombat.rate_limit import limiter

from conftest import ADMIN_EMAIL


@pytest.fixture
def limited_client(client):
    limiter.reset()
    limiter.enabled = True
    yield client
    limiter.enabled = False
    limiter.reset()


def test_login_attempts_are_limited(limited_client):
    payload = {"email": ADMIN_EMAIL, "password": "wrong"}
    for _ in range(5):
        assert limited_client.post("/api/admin/login", json=payload).status_code == 401

    r = limited_client.post("/api/admin/login", json=payload)
    assert r.status_code == 429
    assert r.json() == {
        "success": False,
        "message": "Too many login attempts, please try again after 15 minutes.",
    }


def test_support_contact_is_limited_per_client(limited_client):
    form = {"name": "Ana Lee", "email": "ana@x.com", "subject": "Hi", "message": "Short one"}
    statuses = [limited_client.post("/api/support/contact", json=form).status_code for _ in range(4)]
    assert statuses == [200, 200, 200, 429]
