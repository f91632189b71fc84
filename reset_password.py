#!/usr/bin/env python3
"""
Reset a user's password in the CityGuard database.

This script DOES NOT read or reveal any existing passwords.  It simply
sets a new password hash (PBKDF2-HMAC-SHA256, format "salthex$hashhex")
for the specified user email.  Existing login sessions of that user are
revoked.

Usage:
    python reset_password.py --email admin@ex.com --password "NewStrongPass!234"
    python reset_password.py --database-url sqlite:///./cityguard.db --email admin@ex.com

If --password is omitted, you will be prompted to enter it securely.
"""

import argparse
import getpass
import os
import sys
from typing import List, Optional


MIN_PASSWORD_LENGTH = 6


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Reset a CityGuard user's password.")
    ap.add_argument("--database-url", help="SQLAlchemy URL; defaults to the DATABASE_URL setting")
    ap.add_argument("--email", required=True, help="User email to update")
    ap.add_argument("--password", help="New password. If omitted, you'll be prompted securely.")
    args = ap.parse_args(argv)

    if args.database_url:
        # Settings are read once at import time.
        os.environ["DATABASE_URL"] = args.database_url

    from sqlalchemy import select

    from cityguard_api.app.core.db import session_scope, utcnow
    from cityguard_api.app.core.security import hash_password
    from cityguard_api.app.models import User, UserSession

    new_password = args.password or getpass.getpass("Enter NEW password: ")
    if len(new_password or "") < MIN_PASSWORD_LENGTH:
        print(f"[!] Password must be at least {MIN_PASSWORD_LENGTH} characters.", file=sys.stderr)
        return 1

    email = args.email.strip().lower()
    with session_scope() as session:
        user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if user is None:
            print(f"[!] No user found with email: {email}", file=sys.stderr)
            return 2
        user.password_hash = hash_password(new_password)
        now = utcnow()
        for db_session in session.execute(
            select(UserSession).where(UserSession.user_id == user.id, UserSession.revoked_at.is_(None))
        ).scalars():
            db_session.revoked_at = now
    print(f"[+] Password updated for user: {email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
