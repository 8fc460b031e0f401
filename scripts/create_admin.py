#!/usr/bin/env python3
"""Create an admin account, or promote an existing user to admin.

Registration through the API always produces guests, so the first admin has
to be created here.

Usage:
    python scripts/create_admin.py --email admin@example.com --first-name Ada --last-name Admin

If --password is omitted, you will be prompted to enter it securely.
"""
import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.orm import Session

from registration.config import get_settings
from registration.database import Base, SessionLocal, engine
from registration.models import RoleEnum, User
from registration.security import get_password_hash


def create_admin(db: Session, email: str, password: Optional[str], first_name: str, last_name: str) -> User:
    """Insert a verified admin, or promote and verify the user already holding ``email``."""
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        if not password:
            raise ValueError("A password is required to create a new admin.")
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            hashed_password=get_password_hash(password),
        )
        db.add(user)
    elif password:
        user.hashed_password = get_password_hash(password)

    user.role = RoleEnum.ADMIN
    user.email_verified = True
    user.is_active = True
    db.commit()
    db.refresh(user)
    return user


def main() -> None:
    parser = argparse.ArgumentParser(description="Create or promote an admin account.")
    parser.add_argument("--email", required=True, help="Email address of the admin")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    parser.add_argument("--password", help="Password. If omitted, you'll be prompted securely.")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first")
    args = parser.parse_args()

    settings = get_settings()
    password = args.password or getpass.getpass("Admin password (leave empty to keep existing): ")
    if password and not settings.password_min_length <= len(password) <= settings.password_max_length:
        print(
            f"[!] Password must be between {settings.password_min_length} and "
            f"{settings.password_max_length} characters long.",
            file=sys.stderr,
        )
        sys.exit(1)

    if args.create_tables:
        Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        user = create_admin(db, args.email, password or None, args.first_name, args.last_name)
    except ValueError as exc:
        print(f"[!] {exc}", file=sys.stderr)
        sys.exit(2)
    finally:
        db.close()
    print(f"[+] {user.email} is now an admin (id={user.id}).")


if __name__ == "__main__":
    main()
