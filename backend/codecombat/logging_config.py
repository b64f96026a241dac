"""
Structured JSON logging for the registration backend.

Every record is written to stdout as one JSON object:

    {"timestamp", "level", "message", "channel",
     "context": {"request_id", ...}, "extra": {...}, ["exception"]}

Channels split the log by concern: http (requests, rate limits), db
(store failures), registration (admission pipeline), auth (logins and
token rejections) and mail (notifications). Each channel can be tuned
with LOG_LEVEL_<CHANNEL>, falling back to LOG_LEVEL.

Credentials never reach the output: values under keys such as
"password" or "token" are replaced before the entry is serialised.
"""

import logging
import json
import os
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar

# Request id of the HTTP request being served, set by the middleware in main.py
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

LOGGER_PREFIX = "codecombat"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CHANNELS = ["http", "db", "registration", "auth", "mail"]

SENSITIVE_KEYS = {"password", "token", "authorization", "jwt_secret", "smtp_password"}
REDACTED = "[redacted]"


def _redact(data: dict) -> dict:
    """Copy of data with credential values masked, one level deep."""
    return {key: REDACTED if str(key).lower() in SENSITIVE_KEYS else value
            for key, value in data.items()}


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


class StructuredJsonFormatter(logging.Formatter):
    """Renders a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        context = {"request_id": request_id_var.get("")}
        context.update(getattr(record, "context", None) or {})

        log_entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", None) or record.name.rsplit(".", 1)[-1],
            "context": _redact(context),
            "extra": _redact(getattr(record, "extra_data", None) or {}),
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging():
    """
    Route all logging through one stdout handler with the JSON formatter.

    Safe to call more than once: the root handler list is replaced, not
    appended to.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(_level(LOG_LEVEL))
    root_logger.handlers = [handler]

    for channel in CHANNELS:
        level = os.getenv(f"LOG_LEVEL_{channel.upper()}", LOG_LEVEL)
        get_logger(channel).setLevel(_level(level))

    return root_logger


def get_logger(channel: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_PREFIX}.{channel}")


def log_with_context(logger: logging.Logger, level: str, message: str,
                     context: dict = None, extra_data: dict = None,
                     exc_info: bool = False):
    """
    Emit one structured entry on a channel logger.

    Args:
        logger: Channel logger from get_logger()
        level: "DEBUG", "INFO", "WARNING" or "ERROR"
        message: Human-readable message
        context: Business identifiers (registrant_id, email, ticket_id)
        extra_data: Measurements and diagnostics (duration_ms, ip, error)
        exc_info: Attach the traceback of the exception being handled
    """
    logger.log(
        _level(level),
        message,
        exc_info=exc_info,
        extra={
            "context": context or {},
            "extra_data": extra_data or {},
            "channel": logger.name.rsplit(".", 1)[-1],
        },
    )


def generate_request_id() -> str:
    return str(uuid.uuid4())
