"""
Admin model - the principal allowed to manage registrants.

Admins are provisioned by seed_admin.py, never through the public API.
The password column only ever holds a bcrypt hash.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime
from codecombat.database import Base


class Admin(Base):
    """SQLAlchemy model for the admins table."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, autoincrement=True,
                doc="Admin identifier, carried in session tokens")
    email = Column(String(255), nullable=False, unique=True,
                   doc="Login email")
    password = Column(String(255), nullable=False,
                      doc="bcrypt hash of the admin password")
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc),
                        doc="When this admin was provisioned")

    def __repr__(self):
        return f"<Admin(id={self.id}, email='{self.email}')>"
