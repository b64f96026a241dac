"""
API error taxonomy and the handlers that render it.

Services raise these exceptions; a single handler turns them into the
JSON shape every client relies on: {"success": false, "message": ...}
plus "field" whenever the offending input is known.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from codecombat.logging_config import get_logger, log_with_context

logger = get_logger("http")


class ApiError(Exception):
    """Base class for errors that map to a JSON error response."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, field: Optional[str] = None):
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(ApiError):
    """A submitted field breaks one of the field rules."""
    status_code = 400
    default_message = "Validation failed"

    def __init__(self, field: str, message: str):
        super().__init__(message, field)


DUPLICATE_MESSAGES = {
    "email": "Email already registered",
    "phone": "Phone number already registered",
    "rollNumber": "Roll number already registered",
}


class DuplicateError(ApiError):
    """A unique field (email, phone, rollNumber) is already taken."""
    status_code = 409
    default_message = "Duplicate entry found"

    def __init__(self, field: Optional[str] = None):
        super().__init__(DUPLICATE_MESSAGES.get(field, self.default_message), field)


class NotFound(ApiError):
    status_code = 404
    default_message = "User not found"


class InvalidCredentials(ApiError):
    # Same message whether the email or the password was wrong
    status_code = 401
    default_message = "Invalid credentials"

    def __init__(self):
        super().__init__()


class Unauthorized(ApiError):
    # Same message for missing, malformed, forged and expired tokens
    status_code = 401
    default_message = "Unauthorized"

    def __init__(self):
        super().__init__()


class InternalError(ApiError):
    status_code = 500


FIELD_ALIASES = {"roll_number": "rollNumber"}


def install_exception_handlers(app: FastAPI, expose_tracebacks: bool = False):
    """Register the JSON error handlers on the application."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            log_with_context(logger, "ERROR", f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = None
        message = "Validation failed"
        if errors:
            loc = [part for part in errors[0].get("loc", ()) if part not in ("body", "path", "query")]
            if loc:
                field = FIELD_ALIASES.get(str(loc[0]), str(loc[0]))
                message = f"Invalid value for {field}"
        log_with_context(logger, "WARNING", "Request body rejected",
                         context={"field": field},
                         extra_data={"path": request.url.path, "errors": len(errors)})
        return JSONResponse(status_code=400, content=ValidationError(field, message).to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(status_code=exc.status_code,
                            content={"success": False, "message": message},
                            headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log_with_context(logger, "ERROR", f"Unhandled error on {request.method} {request.url.path}",
                         extra_data={"error": repr(exc)}, exc_info=True)
        body = {"success": False, "message": "Internal server error"}
        if expose_tracebacks:
            body["error"] = repr(exc)
        return JSONResponse(status_code=500, content=body)
