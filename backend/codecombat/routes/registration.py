"""
Registration API routes - public endpoints of the registration form.

Provides endpoints for:
- Submitting a registration (admission pipeline + confirmation email)
- Total registration count for the landing page
- Checking whether an email is already registered
- The branch catalogue shown in the form
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from codecombat.database import get_db
from codecombat.errors import InternalError
from codecombat.rate_limit import limiter, REGISTRATION_LIMIT
from codecombat.services.notifier import dispatch_safely
from codecombat.services.registration import RegistrationService
from codecombat.services.store import RegistrantStore
from codecombat.services.validation import BRANCHES, normalize_email
from codecombat.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("http")
db_logger = get_logger("db")


# ── Pydantic schemas ─────────────────────────────────────────

class RegistrationRequest(BaseModel):
    """
    Registration form body.

    Every field is optional here so that missing values reach the
    pipeline's own form-ordered validation instead of a generic 422.
    """
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    rollNumber: Optional[str] = None
    branch: Optional[str] = None


@router.post("/api/registration/register", status_code=201)
@limiter.limit(REGISTRATION_LIMIT)
def register(request: Request, payload: RegistrationRequest,
             background_tasks: BackgroundTasks, db: Session = Depends(get_db)):
    """
    Admit a new registrant.

    The confirmation email is attached as a background task, so it only
    starts once this response has been sent and can never fail it.
    """
    service = RegistrationService(RegistrantStore(db))
    try:
        registrant = service.submit(payload.model_dump())
    except SQLAlchemyError as e:
        db.rollback()
        log_with_context(db_logger, "ERROR", "Registration failed: {}".format(str(e)), exc_info=True)
        raise InternalError("Registration failed. Please try again later.") from e

    summary = registrant.to_summary()
    background_tasks.add_task(dispatch_safely,
                              request.app.state.notifier.send_registration_confirmation,
                              summary)

    return {
        "success": True,
        "message": "Registration successful",
        "data": summary,
    }


@router.get("/api/registration/count")
def registration_count(db: Session = Depends(get_db)):
    """Total number of registrations."""
    try:
        count = RegistrantStore(db).count()
    except SQLAlchemyError as e:
        log_with_context(db_logger, "ERROR", "Count error: {}".format(str(e)))
        raise InternalError("Failed to fetch registration count") from e
    return {"success": True, "count": count}


@router.get("/api/registration/check/{email}")
def check_email(email: str, db: Session = Depends(get_db)):
    """Whether an email address is already registered."""
    try:
        exists = RegistrantStore(db).email_exists(normalize_email(email))
    except SQLAlchemyError as e:
        log_with_context(db_logger, "ERROR", "Check email error: {}".format(str(e)))
        raise InternalError("Failed to check email") from e
    return {"success": True, "exists": exists}


@router.get("/api/registration/branches")
def list_branches():
    """Branch catalogue offered by the registration form."""
    return {"success": True, "branches": BRANCHES}
