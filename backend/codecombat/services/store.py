"""
Store Service - persistence for registrants and admin principals.

Wraps one SQLAlchemy session per request. Every write is a single
statement committed on its own; unique-constraint violations raised by
the database are translated into DuplicateError so that a raw driver
message never reaches a caller.
"""

import re
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from codecombat.errors import DuplicateError
from codecombat.models.admin import Admin
from codecombat.models.registrant import Registrant
from codecombat.logging_config import get_logger, log_with_context

logger = get_logger("db")

# Public field name -> ORM column name
UNIQUE_FIELDS = {
    "email": "email",
    "phone": "phone",
    "rollNumber": "roll_number",
}
COLUMN_FIELDS = {column: field for field, column in UNIQUE_FIELDS.items()}

CONSTRAINT_PATTERN = re.compile(r"\buq_registrations_(email|phone|roll_number)\b", re.IGNORECASE)
SQLITE_COLUMN_PATTERN = re.compile(r"UNIQUE constraint failed: registrations\.(email|phone|roll_number)\b",
                                   re.IGNORECASE)


def duplicate_field_from_error(error: IntegrityError) -> Optional[str]:
    """
    Work out which unique field an IntegrityError refers to.

    PostgreSQL and MySQL name the constraint (uq_registrations_roll_number),
    SQLite names the column (registrations.roll_number). Only those tokens
    are matched, never the rest of the message, which may quote the
    offending value.
    """
    text = str(getattr(error, "orig", error))
    match = CONSTRAINT_PATTERN.search(text) or SQLITE_COLUMN_PATTERN.search(text)
    if match is None:
        return None
    return COLUMN_FIELDS.get(match.group(1).lower())


class RegistrantStore:
    """Registrant persistence over a single session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, registrant_id: int) -> Optional[Registrant]:
        return self.db.get(Registrant, registrant_id)

    def find_by_field(self, field: str, value: str,
                      exclude_id: Optional[int] = None) -> Optional[Registrant]:
        """Look up a registrant by one of the unique fields."""
        column = getattr(Registrant, UNIQUE_FIELDS[field])
        query = self.db.query(Registrant).filter(column == value)
        if exclude_id is not None:
            query = query.filter(Registrant.id != exclude_id)
        return query.first()

    def email_exists(self, email: str) -> bool:
        return self.find_by_field("email", email) is not None

    def count(self) -> int:
        return self.db.query(func.count(Registrant.id)).scalar() or 0

    def list_all(self) -> List[Registrant]:
        """All registrants, newest first."""
        return (
            self.db.query(Registrant)
            .order_by(Registrant.created_at.desc(), Registrant.id.desc())
            .all()
        )

    def insert(self, fields: dict) -> Registrant:
        registrant = Registrant(
            name=fields["name"],
            email=fields["email"],
            phone=fields["phone"],
            roll_number=fields["rollNumber"],
            branch=fields["branch"],
        )
        self.db.add(registrant)
        self._commit("insert")
        self.db.refresh(registrant)

        log_with_context(logger, "INFO", "Registrant inserted",
                         context={"registrant_id": registrant.id})
        return registrant

    def update(self, registrant: Registrant, fields: dict) -> Registrant:
        """Overwrite all mutable fields of an existing registrant."""
        registrant.name = fields["name"]
        registrant.email = fields["email"]
        registrant.phone = fields["phone"]
        registrant.roll_number = fields["rollNumber"]
        registrant.branch = fields["branch"]
        self._commit("update")

        log_with_context(logger, "INFO", "Registrant updated",
                         context={"registrant_id": registrant.id})
        return registrant

    def delete(self, registrant: Registrant):
        registrant_id = registrant.id
        self.db.delete(registrant)
        self.db.commit()

        log_with_context(logger, "INFO", "Registrant deleted",
                         context={"registrant_id": registrant_id})

    def _commit(self, operation: str):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            field = duplicate_field_from_error(e)
            log_with_context(logger, "WARNING",
                             "Unique constraint rejected {}".format(operation),
                             context={"field": field},
                             extra_data={"error": str(e.orig)})
            raise DuplicateError(field) from e


class AdminStore:
    """Admin principal persistence over a single session."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_email(self, email: str) -> Optional[Admin]:
        return self.db.query(Admin).filter(Admin.email == email).first()

    def upsert(self, email: str, password_hash: str) -> bool:
        """
        Create the admin or reset its password.

        Returns True when a new admin row was created.
        """
        admin = self.find_by_email(email)
        created = admin is None
        if created:
            admin = Admin(email=email, password=password_hash)
            self.db.add(admin)
        else:
            admin.password = password_hash
        self.db.commit()

        log_with_context(logger, "INFO",
                         "Admin {}".format("created" if created else "password reset"),
                         context={"email": email})
        return created
