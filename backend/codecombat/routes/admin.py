"""
Admin API routes - login and registrant management for the dashboard.

Provides endpoints for:
- Logging in (bcrypt check, 24h JWT, login alert email)
- Verifying a stored token
- Listing, updating and deleting registrants

Everything except /login requires "Authorization: Bearer <token>".
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from codecombat.database import get_db
from codecombat.errors import InternalError
from codecombat.rate_limit import limiter, LOGIN_LIMIT
from codecombat.services.auth import AdminAuthGuard, Principal, client_ip, require_admin
from codecombat.services.notifier import dispatch_safely, lookup_location, now_text
from codecombat.services.registration import RegistrationService
from codecombat.services.store import AdminStore, RegistrantStore
from codecombat.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")
db_logger = get_logger("db")


# ── Pydantic schemas ─────────────────────────────────────────

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class RegistrantUpdate(BaseModel):
    """Full field set for an admin edit; partial updates are not supported."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    rollNumber: Optional[str] = None
    branch: Optional[str] = None


def send_login_alert(request: Request, login: dict):
    """Resolve the login origin, then email the operator."""
    settings = request.app.state.settings
    location, isp = lookup_location(login["ip"], settings.geoip_url)
    request.app.state.notifier.send_admin_login_alert(dict(login, location=location, isp=isp))


@router.post("/api/admin/login")
@limiter.limit(LOGIN_LIMIT)
def login(request: Request, payload: LoginRequest,
          background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    """
    Exchange admin credentials for a session token.

    The login alert runs as a background task after the response is sent.
    """
    guard = AdminAuthGuard(AdminStore(db), request.app.state.tokens)
    try:
        token, principal = guard.login(payload.email, payload.password)
    except SQLAlchemyError as e:
        log_with_context(db_logger, "ERROR", "Login error: {}".format(str(e)), exc_info=True)
        raise InternalError("Server error") from e

    login_info = {
        "email": principal.email,
        "ip": client_ip(request),
        "user_agent": request.headers.get("user-agent", ""),
        "timestamp": now_text(),
    }
    background_tasks.add_task(dispatch_safely, send_login_alert, request, login_info)

    return {
        "success": True,
        "token": token,
        "admin": {"email": principal.email, "role": principal.role},
    }


@router.get("/api/admin/verify")
def verify(admin: Principal = Depends(require_admin)):
    """Confirms that the presented token is still valid."""
    return {"success": True, "valid": True}


@router.get("/api/admin/users")
def list_users(admin: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    """All registrants, newest first."""
    try:
        users = RegistrantStore(db).list_all()
    except SQLAlchemyError as e:
        log_with_context(db_logger, "ERROR", "Fetch users error: {}".format(str(e)))
        raise InternalError("Failed to fetch users") from e

    log_with_context(logger, "INFO", "Listed {} registrants".format(len(users)),
                     context={"admin": admin.email})
    return {"success": True, "count": len(users), "users": [u.to_admin_dict() for u in users]}


@router.put("/api/admin/users/{registrant_id}")
def update_user(registrant_id: int, payload: RegistrantUpdate,
                admin: Principal = Depends(require_admin), db: Session = Depends(get_db)):
    """Overwrite a registrant's five mutable fields."""
    service = RegistrationService(RegistrantStore(db))
    try:
        service.update(registrant_id, payload.model_dump())
    except SQLAlchemyError as e:
        db.rollback()
        log_with_context(db_logger, "ERROR", "Update user error: {}".format(str(e)),
                         context={"registrant_id": registrant_id})
        raise InternalError("Failed to update user") from e

    log_with_context(logger, "INFO", "Registrant {} updated".format(registrant_id),
                     context={"registrant_id": registrant_id, "admin": admin.email})
    return {"success": True, "message": "User updated successfully"}


@router.delete("/api/admin/users/{registrant_id}")
def delete_user(registrant_id: int, admin: Principal = Depends(require_admin),
                db: Session = Depends(get_db)):
    """Permanently remove a registrant."""
    service = RegistrationService(RegistrantStore(db))
    try:
        service.delete(registrant_id)
    except SQLAlchemyError as e:
        db.rollback()
        log_with_context(db_logger, "ERROR", "Delete user error: {}".format(str(e)),
                         context={"registrant_id": registrant_id})
        raise InternalError("Failed to delete user") from e

    log_with_context(logger, "INFO", "Registrant {} deleted".format(registrant_id),
                     context={"registrant_id": registrant_id, "admin": admin.email})
    return {"success": True, "message": "User deleted successfully"}
