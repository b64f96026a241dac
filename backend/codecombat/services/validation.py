"""
Field validation for registration, admin edits and support requests.

Fields are checked in form order and the first broken rule raises a
ValidationError naming that field, so the client can highlight exactly
one input at a time. Values are trimmed before checking and the cleaned
values are returned to the caller.
"""

import re

from email_validator import validate_email, EmailNotValidError

from codecombat.errors import ValidationError

PHONE_PATTERN = re.compile(r"^[0-9]{10}$")
DIGITS_PATTERN = re.compile(r"^[0-9]+$")

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 255
ROLL_NUMBER_MAX_LENGTH = 50

# Offered by the registration form; the server accepts any non-empty branch
BRANCHES = [
    "Computer Science & Engineering",
    "Information Technology",
    "Computer Science & Communication Engineering",
    "Computer Science & Systems Engineering",
    "Computer Science and Engineering with specialization Artificial Intelligence and Machine Learning",
    "Computer Science and Engineering with specialization Artificial Intelligence",
    "Computer Science and Engineering with specialization Cyber Security",
    "Computer Science and Engineering with specialization Data Science",
    "Computer Science and Engineering with specialization Internet of Things and Cyber Security Including Block Chain Technology",
    "Computer Science and Engineering with specialization Internet of Things",
    "Electrical Engineering",
    "Electrical and Computer Engineering",
    "Electronics & Tele-Communication Engineering",
    "Electronics & Electrical Engineering",
    "Electronics and Computer Science Engineering",
    "Electronics Engineering VLSI Design and Technology",
    "Electronics and Instrumentation",
    "Chemical Engineering",
    "Civil Engineering",
    "Construction Technology",
    "Mechanical Engineering",
    "Mechanical Engineering(Automobile)",
    "Aerospace Engineering",
    "Mechatronics Engineering",
    "Other",
]


def _clean(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _require(field: str, value: str, label: str):
    if not value:
        raise ValidationError(field, f"{label} is required")


def is_valid_email(email: str) -> bool:
    """Syntax-only email check (no DNS deliverability lookup)."""
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def validate_name(value, field: str = "name") -> str:
    name = _clean(value)
    _require(field, name, "Name")
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise ValidationError(field, f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters")
    return name


def normalize_email(value) -> str:
    """Trimmed, lower-cased form under which emails are stored and compared."""
    return _clean(value).lower()


def validate_email_field(value, field: str = "email") -> str:
    email = normalize_email(value)
    _require(field, email, "Email")
    try:
        result = validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        raise ValidationError(field, "Invalid email format")
    return result.normalized.lower()


def validate_phone(value) -> str:
    phone = _clean(value)
    _require("phone", phone, "Phone number")
    if not PHONE_PATTERN.match(phone):
        raise ValidationError("phone", "Phone number must be exactly 10 digits")
    return phone


def validate_roll_number(value, numeric_only: bool = False) -> str:
    roll_number = _clean(value)
    _require("rollNumber", roll_number, "Roll number")
    if len(roll_number) > ROLL_NUMBER_MAX_LENGTH:
        raise ValidationError("rollNumber", f"Roll number must be at most {ROLL_NUMBER_MAX_LENGTH} characters")
    if numeric_only and not DIGITS_PATTERN.match(roll_number):
        raise ValidationError("rollNumber", "Roll number must contain only numbers")
    return roll_number


def validate_branch(value) -> str:
    branch = _clean(value)
    _require("branch", branch, "Branch")
    return branch


def validate_registrant_fields(data: dict, numeric_roll_number: bool = False) -> dict:
    """
    Validate the five registrant fields in form order.

    Args:
        data: Raw values keyed name, email, phone, rollNumber, branch
        numeric_roll_number: Also require a digits-only roll number
            (the rule applied to admin edits)

    Returns:
        Dict of cleaned values with the same keys

    Raises:
        ValidationError: For the first field that breaks a rule
    """
    return {
        "name": validate_name(data.get("name")),
        "email": validate_email_field(data.get("email")),
        "phone": validate_phone(data.get("phone")),
        "rollNumber": validate_roll_number(data.get("rollNumber"), numeric_only=numeric_roll_number),
        "branch": validate_branch(data.get("branch")),
    }


def validate_support_fields(data: dict) -> dict:
    """Validate a support/contact form submission in form order."""
    name = validate_name(data.get("name"))
    email = validate_email_field(data.get("email"))

    subject = _clean(data.get("subject"))
    _require("subject", subject, "Subject")
    if len(subject) > 255:
        raise ValidationError("subject", "Subject must be between 1 and 255 characters")

    message = _clean(data.get("message"))
    _require("message", message, "Message")
    if not 3 <= len(message) <= 5000:
        raise ValidationError("message", "Message must be between 3 and 5000 characters")

    return {"name": name, "email": email, "subject": subject, "message": message}
