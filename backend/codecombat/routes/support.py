"""
Support API route - contact form that emails the organisers.

Unlike the registration confirmation, delivery happens inside the request:
the visitor is told whether the message actually went out.
"""

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from codecombat.rate_limit import limiter, SUPPORT_LIMIT
from codecombat.services.notifier import NotificationError
from codecombat.services.validation import validate_support_fields
from codecombat.logging_config import get_logger, log_with_context

router = APIRouter()
logger = get_logger("mail")


class SupportRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None


@router.post("/api/support/contact")
@limiter.limit(SUPPORT_LIMIT)
def contact(request: Request, payload: SupportRequest):
    """Validate the contact form and forward it to the support inbox."""
    form = validate_support_fields(payload.model_dump())

    try:
        ticket_id = request.app.state.notifier.send_support_request(form)
    except NotificationError:
        return JSONResponse(status_code=500, content={
            "success": False,
            "message": "Failed to send your message. Please try again later or contact us "
                       "directly at support@codecombat.live",
        })

    log_with_context(logger, "INFO", "Support request forwarded",
                     context={"ticket_id": ticket_id, "email": form["email"]})
    return {
        "success": True,
        "message": "Your message has been sent successfully. We will get back to you soon.",
    }
