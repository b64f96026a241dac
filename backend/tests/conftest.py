from __future__ import annotations

import smtplib

import pytest
from fastapi.testclient import TestClient

from codecombat.config import Settings
from codecombat.database import Database
from codecombat.main import create_app
from codecombat.rate_limit import limiter
from codecombat.services.auth import hash_password
from codecombat.services.notifier import Notifier
from codecombat.services.store import AdminStore

ADMIN_EMAIL = "admin@codecombat.live"
ADMIN_PASSWORD = "Sup3rSecret!"

ANA = {
    "name": "Ana Lee",
    "email": "ana@x.com",
    "phone": "9876543210",
    "rollNumber": "21CS045",
    "branch": "Information Technology",
}


class RecordingTransport:
    """Mail transport that keeps every message instead of sending it."""

    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)


class FailingTransport:
    def send(self, message):
        raise smtplib.SMTPException("relay unavailable")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        database_url="sqlite://",
        jwt_secret="test-secret",
        rate_limit_enabled=False,
        geoip_url="",
        admin_alert_email="ops@codecombat.live",
        support_inbox_email="inbox@codecombat.live",
    )


@pytest.fixture
def database(settings):
    db = Database(settings.database_url)
    db.create_tables()
    yield db
    db.dispose()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def app(settings, database, transport):
    application = create_app(settings, database=database, notifier=Notifier(settings, transport=transport))
    yield application
    limiter.enabled = False


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def seed_admin(database: Database, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD):
    session = database.session()
    try:
        AdminStore(session).upsert(email, hash_password(password))
    finally:
        session.close()


@pytest.fixture
def admin_account(database):
    seed_admin(database)
    return ADMIN_EMAIL, ADMIN_PASSWORD


@pytest.fixture
def auth_headers(client, admin_account) -> dict:
    email, password = admin_account
    r = client.post("/api/admin/login", json={"email": email, "password": password})
    assert r.status_code == 200
    return {"Authorization": f"Bearer {r.json()['token']}"}


def register(client: TestClient, **overrides):
    return client.post("/api/registration/register", json=dict(ANA, **overrides))
