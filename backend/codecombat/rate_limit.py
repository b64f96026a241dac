"""
Rate limiting for the public API (slowapi, keyed by client IP).

Limits:
- default: every route without its own limit (100 per 15 minutes)
- /registration/register: 50 per hour
- /admin/login: 5 per 15 minutes
- /support/contact: 3 per 15 minutes

A request over its limit gets 429 before the route handler runs.

The route decorators bind to the single module-level limiter, so there is
one limiter per process. create_app() sets limiter.enabled from its
settings; the last app built decides whether limits apply to all of them.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from codecombat.services.auth import client_ip
from codecombat.logging_config import get_logger, log_with_context

logger = get_logger("http")

DEFAULT_LIMIT = "100/15 minutes"
REGISTRATION_LIMIT = "50/hour"
LOGIN_LIMIT = "5/15 minutes"
SUPPORT_LIMIT = "3/15 minutes"

limiter = Limiter(key_func=client_ip, default_limits=[DEFAULT_LIMIT])

LIMIT_MESSAGES = {
    "/api/registration/register": "Too many registration attempts from this IP, please try again after an hour.",
    "/api/admin/login": "Too many login attempts, please try again after 15 minutes.",
    "/api/support/contact": "Too many requests from this IP, please try again after 15 minutes.",
}


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    log_with_context(logger, "WARNING", "Rate limit exceeded",
                     extra_data={"path": request.url.path, "ip": client_ip(request), "limit": str(exc.detail)})
    message = LIMIT_MESSAGES.get(request.url.path,
                                 "Too many requests from this IP, please try again later.")
    return JSONResponse(status_code=429, content={"success": False, "message": message})
