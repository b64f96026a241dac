"""
Admin Seeder Script - provisions the dashboard admin account.

Creates the admins table if needed, then creates the admin or resets its
password. Admins are never created through the public API.

Usage:
    python seed_admin.py                              # Uses ADMIN_EMAIL / ADMIN_PASSWORD
    python seed_admin.py admin@codecombat.live        # Prompts for the password
    python seed_admin.py admin@codecombat.live s3cret # Explicit password
"""

import getpass
import os
import sys

from codecombat.config import load_settings
from codecombat.database import Database
from codecombat.logging_config import setup_logging
from codecombat.services.auth import hash_password
from codecombat.services.store import AdminStore
from codecombat.services.validation import is_valid_email, normalize_email


def main():
    setup_logging()

    email = sys.argv[1] if len(sys.argv) > 1 else os.getenv("ADMIN_EMAIL", "")
    password = sys.argv[2] if len(sys.argv) > 2 else os.getenv("ADMIN_PASSWORD", "")
    email = normalize_email(email)

    if not email or not is_valid_email(email):
        print("Error: provide a valid admin email (argument or ADMIN_EMAIL)")
        sys.exit(1)
    if not password:
        password = getpass.getpass(f"Password for {email}: ")
    if len(password) < 8:
        print("Error: the admin password must be at least 8 characters")
        sys.exit(1)

    settings = load_settings()
    database = Database(settings.database_url)
    database.create_tables()

    session = database.session()
    try:
        created = AdminStore(session).upsert(email, hash_password(password))
    finally:
        session.close()
        database.dispose()

    print(f"✅ Admin user {'created' if created else 'updated'}: {email}")


if __name__ == "__main__":
    main()
