"""
Runtime configuration for the CODECOMBAT registration backend.

All settings come from environment variables and are read once by
load_settings() into an immutable Settings object. The application
factory receives a Settings instance, so tests can build one directly
without touching the process environment.
"""

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return float(value)


@dataclass(frozen=True)
class Settings:
    """
    Application settings.

    Defaults match local development: a SQLite file database, no SMTP
    credentials and rate limiting switched on.
    """
    environment: str = "development"
    database_url: str = "sqlite:///./codecombat.db"
    db_pool_size: int = 10
    db_max_overflow: int = 90

    jwt_secret: str = "change-me"
    token_ttl_hours: int = 24

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_starttls: bool = True
    smtp_timeout: float = 30.0
    mail_from: str = "no-reply@codecombat.live"
    security_mail_from: str = "security@codecombat.live"
    support_mail_from: str = "support@codecombat.live"
    admin_alert_email: str = "support@codecombat.live"
    support_inbox_email: str = "support@codecombat.live"

    # "{ip}" is substituted; an empty value disables the lookup
    geoip_url: str = "http://ip-api.com/json/{ip}"

    frontend_url: str = "http://localhost:3000"
    trust_proxy: bool = True

    rate_limit_enabled: bool = True

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def load_settings() -> Settings:
    """Build Settings from the process environment."""
    defaults = Settings()
    return Settings(
        environment=os.getenv("ENVIRONMENT", defaults.environment),
        database_url=os.getenv("DATABASE_URL", defaults.database_url),
        db_pool_size=_env_int("DB_POOL_SIZE", defaults.db_pool_size),
        db_max_overflow=_env_int("DB_MAX_OVERFLOW", defaults.db_max_overflow),
        jwt_secret=os.getenv("JWT_SECRET", defaults.jwt_secret),
        token_ttl_hours=_env_int("TOKEN_TTL_HOURS", defaults.token_ttl_hours),
        smtp_host=os.getenv("SMTP_HOST", defaults.smtp_host),
        smtp_port=_env_int("SMTP_PORT", defaults.smtp_port),
        smtp_user=os.getenv("SMTP_USER", defaults.smtp_user),
        smtp_password=os.getenv("SMTP_PASSWORD", defaults.smtp_password),
        smtp_starttls=_env_bool("SMTP_STARTTLS", defaults.smtp_starttls),
        smtp_timeout=_env_float("SMTP_TIMEOUT", defaults.smtp_timeout),
        mail_from=os.getenv("MAIL_FROM", defaults.mail_from),
        security_mail_from=os.getenv("SECURITY_MAIL_FROM", defaults.security_mail_from),
        support_mail_from=os.getenv("SUPPORT_MAIL_FROM", defaults.support_mail_from),
        admin_alert_email=os.getenv("ADMIN_ALERT_EMAIL", defaults.admin_alert_email),
        support_inbox_email=os.getenv("SUPPORT_INBOX_EMAIL", defaults.support_inbox_email),
        geoip_url=os.getenv("GEOIP_URL", defaults.geoip_url),
        frontend_url=os.getenv("FRONTEND_URL", defaults.frontend_url),
        trust_proxy=_env_bool("TRUST_PROXY", defaults.trust_proxy),
        rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", defaults.rate_limit_enabled),
    )
