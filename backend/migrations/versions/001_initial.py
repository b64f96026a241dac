"""Initial migration - create all tables

Revision ID: 001_initial
Revises: None
Create Date: 2025-01-10

Creates all database tables for the CODECOMBAT registration backend:
- registrations: One row per registrant with unique email/phone/roll number
- admins: Dashboard administrators with bcrypt password hashes

The unique constraint names are relied on to attribute insert races to
the offending field, so they must match the ORM models.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Registrations Table ───────────────────────────────────
    op.create_table(
        'registrations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(10), nullable=False),
        sa.Column('roll_number', sa.String(50), nullable=False),
        sa.Column('branch', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(),
                  server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('email', name='uq_registrations_email'),
        sa.UniqueConstraint('phone', name='uq_registrations_phone'),
        sa.UniqueConstraint('roll_number', name='uq_registrations_roll_number'),
    )

    # Admin dashboard lists newest registrations first
    op.create_index('ix_registrations_created_at', 'registrations', ['created_at'])

    # ── Admins Table ──────────────────────────────────────────
    op.create_table(
        'admins',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('password', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(),
                  server_default=sa.func.now(), nullable=True),
    )


def downgrade() -> None:
    """Drop all tables in reverse creation order."""
    op.drop_table('admins')
    op.drop_index('ix_registrations_created_at', table_name='registrations')
    op.drop_table('registrations')
