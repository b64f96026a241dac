"""
Registrant model - one person who submitted the registration form.

Email, phone and roll number are each globally unique. The named unique
constraints are what the store uses to attribute an insert race to the
offending field, so their names must stay in sync with the migration.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Index, UniqueConstraint
from codecombat.database import Base


class Registrant(Base):
    """
    SQLAlchemy model for the registrations table.

    Rows are created only by the registration pipeline, rewritten as a
    whole by an authenticated admin and removed permanently on delete.
    """
    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, autoincrement=True,
                doc="Auto-assigned registrant identifier")
    name = Column(String(255), nullable=False,
                  doc="Participant's full name")
    email = Column(String(255), nullable=False,
                   doc="Contact email, unique across registrants")
    phone = Column(String(10), nullable=False,
                   doc="10-digit phone number, unique across registrants")
    roll_number = Column(String(50), nullable=False,
                         doc="College roll number, unique across registrants")
    branch = Column(String(255), nullable=False,
                    doc="Academic branch, normally one of the branch catalogue entries")
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc),
                        doc="When the registration was accepted")

    __table_args__ = (
        UniqueConstraint("email", name="uq_registrations_email"),
        UniqueConstraint("phone", name="uq_registrations_phone"),
        UniqueConstraint("roll_number", name="uq_registrations_roll_number"),
        Index("ix_registrations_created_at", "created_at"),
    )

    def to_summary(self) -> dict:
        """Public fields echoed back to the registrant."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "rollNumber": self.roll_number,
            "branch": self.branch,
        }

    def to_admin_dict(self) -> dict:
        data = self.to_summary()
        data["createdAt"] = self.created_at.isoformat() if self.created_at else None
        return data

    def __repr__(self):
        return f"<Registrant(id={self.id}, name='{self.name}', email='{self.email}')>"
