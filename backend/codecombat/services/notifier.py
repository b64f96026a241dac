"""
Notification Service - outbound email for registrants, admins and support.

Three kinds of mail are sent:
1. Registration confirmation to the new registrant
2. Admin login alert to the operator address
3. Support/contact requests to the support inbox

Confirmation and login alerts are fire-and-forget: routes schedule them
with dispatch_safely() as a background task that runs after the HTTP
response has been sent, and any failure is logged and dropped. Support
requests are delivered synchronously because the caller needs to know
whether the message went out.
"""

import html
import secrets
import smtplib
import string
import time
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Optional, Tuple

import httpx

from codecombat.config import Settings
from codecombat.logging_config import get_logger, log_with_context

logger = get_logger("mail")

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
GEOIP_TIMEOUT_SECONDS = 5.0
TICKET_ALPHABET = string.ascii_uppercase + string.digits


class NotificationError(Exception):
    """Raised when an email could not be handed to the mail server."""
    pass


class SmtpTransport:
    """Delivers messages through an SMTP relay (STARTTLS on port 587 by default)."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.starttls = settings.smtp_starttls
        self.timeout = settings.smtp_timeout

    def send(self, message: EmailMessage):
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.starttls:
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(message)


def render_template(name: str, values: dict, fallback: str) -> str:
    """
    Fill an HTML template from the templates directory.

    Values are HTML-escaped. A missing or unreadable template falls back
    to a minimal inline body so the mail still goes out.
    """
    escaped = {key: html.escape(str(value)) for key, value in values.items()}
    try:
        source = (TEMPLATE_DIR / name).read_text(encoding="utf-8")
    except OSError as e:
        log_with_context(logger, "ERROR", "Error reading email template {}".format(name),
                         extra_data={"error": str(e)})
        source = fallback
    return string.Template(source).safe_substitute(escaped)


def generate_ticket_id() -> str:
    """Short random ticket id so support mails never thread together."""
    return "".join(secrets.choice(TICKET_ALPHABET) for _ in range(6))


def lookup_location(ip: str, url_template: str) -> Tuple[str, str]:
    """
    Resolve an IP address to a coarse location and ISP.

    Returns ("Location Lookup Failed", "Unknown") when the lookup service
    cannot be reached, and ("Unknown Location", "Unknown ISP") when it
    answers without a result.
    """
    if not url_template:
        return "Unknown Location", "Unknown ISP"
    try:
        with httpx.Client(timeout=GEOIP_TIMEOUT_SECONDS) as client:
            resp = client.get(url_template.format(ip=ip))
            resp.raise_for_status()
            data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        log_with_context(logger, "WARNING", "Location lookup failed",
                         extra_data={"ip": ip, "error": str(e)})
        return "Location Lookup Failed", "Unknown"

    if data.get("status") == "success":
        location = "{}, {}, {}".format(data.get("city"), data.get("regionName"), data.get("country"))
    else:
        location = "Unknown Location"
    return location, data.get("isp") or "Unknown ISP"


class Notifier:
    """
    Builds and sends the application's emails.

    Args:
        settings: Application settings (sender addresses, recipients)
        transport: Object with a send(EmailMessage) method; defaults to SMTP
    """

    def __init__(self, settings: Settings, transport=None):
        self.settings = settings
        self.transport = transport or SmtpTransport(settings)

    def send_registration_confirmation(self, registrant: dict):
        year = datetime.now(timezone.utc).year
        name = registrant["name"]
        values = {
            "name": name,
            "email": registrant["email"],
            "roll_number": registrant["rollNumber"],
            "branch": registrant["branch"],
            "year": year,
        }
        text = (
            "CODECOMBAT - Registration Confirmation\n\n"
            f"Dear {name},\n\n"
            "Welcome to the arena! Your registration for CODECOMBAT has been confirmed.\n\n"
            "Registration Details:\n"
            f"- Name: {name}\n"
            f"- Email: {registrant['email']}\n"
            f"- Roll Number: {registrant['rollNumber']}\n"
            f"- Branch: {registrant['branch']}\n\n"
            "You are now officially registered for the competitive coding battle "
            "organized by IEEE CTSoc. Event details will be shared soon.\n\n"
            "If you have any questions, contact us at support@codecombat.live\n\n"
            f"---\nCODECOMBAT\nOrganized by IEEE CTSoc\n(c) {year} IEEE CTSoc. All rights reserved.\n"
        )
        message = self._build(
            sender=("CODECOMBAT", self.settings.mail_from),
            recipient=registrant["email"],
            subject="Registration Confirmed - CODECOMBAT",
            text=text,
            html_body=render_template("registration_email.html", values,
                                      "<h1>Registration Successful</h1><p>Welcome $name!</p>"),
        )
        self._deliver(message, "registration_confirmation")

    def send_admin_login_alert(self, login: dict):
        """
        Alert the operator that an admin signed in.

        Args:
            login: email, ip, user_agent, location, isp and timestamp
        """
        values = {
            "email": login["email"],
            "ip": login.get("ip") or "Unknown",
            "user_agent": login.get("user_agent") or "Unknown",
            "location": login.get("location") or "Unknown",
            "isp": login.get("isp") or "Unknown",
            "timestamp": login.get("timestamp") or now_text(),
        }
        message = self._build(
            sender=("CODECOMBAT SECURITY", self.settings.security_mail_from),
            recipient=self.settings.admin_alert_email,
            subject="Admin Access Detected - {}".format(values["timestamp"]),
            text="Admin login: {email} from {ip} ({location}) at {timestamp}".format(**values),
            html_body=render_template("admin_login_alert.html", values,
                                      "<h1>Admin Login Alert</h1><p>User: $email</p><p>IP: $ip</p>"),
        )
        self._deliver(message, "admin_login_alert")

    def send_support_request(self, form: dict) -> str:
        """
        Forward a contact-form message to the support inbox.

        Returns:
            The ticket id placed in the subject line

        Raises:
            NotificationError: If the mail server rejected the message
        """
        ticket_id = generate_ticket_id()
        values = dict(form, timestamp=now_text())
        text = (
            "CODECOMBAT - Support Request\n\n"
            f"From: {form['name']} ({form['email']})\n"
            f"Subject: {form['subject']}\n\n"
            f"Message:\n{form['message']}\n\n"
            f"---\nReply to this email to respond directly to the sender.\nReceived: {values['timestamp']}\n"
        )
        message = self._build(
            sender=("CODECOMBAT SUPPORT", self.settings.support_mail_from),
            recipient=self.settings.support_inbox_email,
            subject="[Ticket #{}] {}".format(ticket_id, form["subject"]),
            text=text,
            html_body=render_template("support_email.html", values,
                                      "<h1>Support Request</h1><p>From: $name ($email)</p><p>$message</p>"),
            reply_to=form["email"],
        )
        message["X-Ticket-ID"] = ticket_id
        message["X-Priority"] = "3"
        message["Importance"] = "Normal"
        self._deliver(message, "support_request", context={"ticket_id": ticket_id})
        return ticket_id

    def _build(self, sender: tuple, recipient: str, subject: str, text: str,
               html_body: str, reply_to: Optional[str] = None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr(sender)
        message["To"] = recipient
        message["Subject"] = subject
        if reply_to:
            message["Reply-To"] = reply_to
        message.set_content(text)
        message.add_alternative(html_body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage, kind: str, context: dict = None):
        start_time = time.time()
        try:
            self.transport.send(message)
        except (smtplib.SMTPException, OSError) as e:
            log_with_context(logger, "ERROR", "Email sending failed: {}".format(kind),
                             context={"recipient": message["To"], **(context or {})},
                             extra_data={"error": str(e)})
            raise NotificationError(str(e)) from e

        duration_ms = (time.time() - start_time) * 1000
        log_with_context(logger, "INFO", "Email sent: {}".format(kind),
                         context={"recipient": message["To"], **(context or {})},
                         extra_data={"duration_ms": round(duration_ms, 2)})


def now_text() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def dispatch_safely(task, *args, **kwargs):
    """
    Run a notification as a detached background task.

    Failures are logged on the mail channel and never re-raised, so a
    broken mail server cannot turn into an error for the request that
    scheduled the notification. Nothing is retried.
    """
    name = getattr(task, "__name__", repr(task))
    try:
        task(*args, **kwargs)
    except Exception as e:
        log_with_context(logger, "ERROR", "Background notification failed: {}".format(name),
                         extra_data={"error": str(e)}, exc_info=True)
