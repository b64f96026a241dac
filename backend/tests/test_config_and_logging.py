from __future__ import annotations

import json
import logging
from dataclasses import replace

import pytest

from codecombat.config import load_settings
from codecombat.logging_config import StructuredJsonFormatter, get_logger, request_id_var, setup_logging
from codecombat.main import create_app
from codecombat.rate_limit import limiter


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("SMTP_TIMEOUT", "7.5")
    monkeypatch.setenv("TOKEN_TTL_HOURS", "12")
    monkeypatch.setenv("RATE_LIMIT_ENABLED", "false")
    settings = load_settings()
    assert settings.smtp_timeout == 7.5
    assert settings.token_ttl_hours == 12
    assert settings.rate_limit_enabled is False


def test_defaults_without_environment(monkeypatch):
    monkeypatch.delenv("SMTP_TIMEOUT", raising=False)
    assert load_settings().smtp_timeout == 30.0


def test_last_app_built_sets_shared_limiter(settings, database):
    create_app(settings, database=database)
    assert limiter.enabled is False

    try:
        create_app(replace(settings, rate_limit_enabled=True), database=database)
        assert limiter.enabled is True
    finally:
        limiter.enabled = False


def _format(**extra) -> dict:
    record = logging.LogRecord("codecombat.auth", logging.INFO, __file__, 1, "Admin login", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(StructuredJsonFormatter().format(record))


def test_log_entry_shape():
    token = request_id_var.set("req-1")
    try:
        entry = _format(context={"email": "admin@codecombat.live"}, extra_data={"ip": "10.0.0.1"})
    finally:
        request_id_var.reset(token)

    assert entry["level"] == "INFO"
    assert entry["channel"] == "auth"
    assert entry["context"] == {"request_id": "req-1", "email": "admin@codecombat.live"}
    assert entry["extra"] == {"ip": "10.0.0.1"}
    assert entry["timestamp"].endswith("Z")


def test_credentials_are_redacted():
    entry = _format(context={"email": "admin@codecombat.live", "password": "Sup3rSecret!"},
                    extra_data={"Authorization": "Bearer abc.def.ghi", "duration_ms": 3})
    assert entry["context"]["password"] == "[redacted]"
    assert entry["extra"]["Authorization"] == "[redacted]"
    assert entry["extra"]["duration_ms"] == 3
    assert "Sup3rSecret!" not in json.dumps(entry)


@pytest.fixture
def restore_logging(monkeypatch):
    yield
    monkeypatch.undo()
    setup_logging()


def test_channel_level_override(monkeypatch, restore_logging):
    monkeypatch.setenv("LOG_LEVEL_MAIL", "ERROR")
    setup_logging()
    assert get_logger("mail").level == logging.ERROR
    assert get_logger("http").level == logging.INFO
