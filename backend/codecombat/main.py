"""
CODECOMBAT Registration Backend - FastAPI Application Entry Point.

This is the main application module that:
1. Builds the FastAPI app through create_app() with its store handle,
   token service and notifier attached to app.state
2. Sets up structured JSON logging
3. Implements request ID middleware (X-Request-ID header)
4. Installs CORS, rate limiting and the JSON error handlers
5. Registers all API route handlers and the health check

The application follows a modular architecture:
- routes/: API endpoint handlers
- models/: SQLAlchemy ORM models
- services/: Business logic (admission pipeline, auth guard, notifier, store)
- logging_config.py: Structured logging configuration
- database.py: Database connection management
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from codecombat.config import Settings, load_settings
from codecombat.database import Database
from codecombat.errors import install_exception_handlers
from codecombat.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from codecombat.rate_limit import limiter, rate_limit_exceeded_handler
from codecombat.routes import admin, registration, support
from codecombat.services.auth import TokenService
from codecombat.services.notifier import Notifier

# ──────────────────────────────────────────────────────────────
# Initialize structured logging BEFORE anything else
# ──────────────────────────────────────────────────────────────
setup_logging()
logger = get_logger("http")


@asynccontextmanager
async def lifespan(app: FastAPI):
    database = app.state.database
    # SQLite has no migration step; server databases use Alembic
    if database.is_sqlite:
        log_with_context(logger, "INFO", "Using SQLite, creating tables directly")
        database.create_tables()
    yield
    database.dispose()


def create_app(settings: Optional[Settings] = None,
               database: Optional[Database] = None,
               notifier: Optional[Notifier] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted
        database: Store handle; built from settings.database_url when omitted
        notifier: Email notifier; an SMTP-backed Notifier when omitted
    """
    settings = settings or load_settings()

    if settings.jwt_secret == Settings.jwt_secret and not settings.is_development:
        log_with_context(logger, "WARNING", "JWT_SECRET is not set; using the development default")

    app = FastAPI(
        title="CODECOMBAT Registration API",
        description=(
            "Registration and admin backend for the CODECOMBAT competitive "
            "programming event: participant admission, admin dashboard "
            "operations and email notifications."
        ),
        version="1.0.0",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database or Database(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )
    app.state.tokens = TokenService(settings.jwt_secret, timedelta(hours=settings.token_ttl_hours))
    app.state.notifier = notifier or Notifier(settings)

    # ──────────────────────────────────────────────────────────────
    # Rate limiting (slowapi); one limiter shared by all routes
    # and by every app in the process, see rate_limit.py
    # ──────────────────────────────────────────────────────────────
    limiter.enabled = settings.rate_limit_enabled
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    # ──────────────────────────────────────────────────────────────
    # CORS Middleware
    #
    # Only the Next.js frontend may call the API with credentials.
    # ──────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"]
    )

    install_exception_handlers(app, expose_tracebacks=settings.is_development)

    # ──────────────────────────────────────────────────────────────
    # Request ID Middleware
    #
    # Generates a unique UUID per incoming request and:
    # 1. Stores it in a context variable (available to all log entries)
    # 2. Returns it in the X-Request-ID response header
    # 3. Logs request start/end with latency measurement
    # ──────────────────────────────────────────────────────────────
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        req_id = generate_request_id()
        request_id_var.set(req_id)

        start_time = time.time()

        log_with_context(logger, "INFO",
            f"Request started: {request.method} {request.url.path}",
            context={"request_id": req_id},
            extra_data={
                "ip": request.client.host if request.client else "unknown",
                "user_agent": request.headers.get("user-agent", ""),
            })

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = req_id

        log_with_context(logger, "INFO",
            f"Request completed: {request.method} {request.url.path} → {response.status_code}",
            context={"request_id": req_id},
            extra_data={
                "duration_ms": round(duration_ms, 2),
                "status_code": response.status_code
            })

        return response

    # ──────────────────────────────────────────────────────────────
    # Register API routes
    # ──────────────────────────────────────────────────────────────
    app.include_router(registration.router, tags=["Registration"])
    app.include_router(admin.router, tags=["Admin"])
    app.include_router(support.router, tags=["Support"])

    @app.get("/api/health", tags=["Health"])
    def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "OK",
            "message": "Server is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app


app = create_app()
