#!/usr/bin/env python3
"""
Create an administrator account, or reset its password.

Usage:
    python scripts/create_admin.py <username>
    python scripts/create_admin.py <username> --password-stdin < password.txt

The password is prompted for unless --password-stdin is given.
"""

import argparse
import getpass
import sys
import os

# Add parent directory to path to import backend modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mailroom.db.session import SessionLocal, init_db
from mailroom.models.user import User
from mailroom.services.auth_service import create_user, hash_password, validate_password_strength


def create_or_reset_admin(username: str, password: str) -> bool:
    """Create the account, or replace its password if it exists"""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.username == username).first()
        if user:
            user.password_hash = hash_password(password)
            db.commit()
            print(f"✓ Password reset for admin: {username} (ID: {user.id})")
            return True

        user = create_user(username, password, db)
        print(f"✓ Admin created: {username} (ID: {user.id})")
        return True

    except Exception as e:
        print(f"❌ Failed to create admin: {e}")
        db.rollback()
        return False
    finally:
        db.close()


def read_password(from_stdin: bool) -> str:
    if from_stdin:
        return sys.stdin.readline().rstrip("\n")

    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("❌ Passwords do not match")
        sys.exit(1)
    return password


def main():
    parser = argparse.ArgumentParser(description="Create or reset an administrator account")
    parser.add_argument("username")
    parser.add_argument("--password-stdin", action="store_true", help="Read the password from stdin")
    args = parser.parse_args()

    password = read_password(args.password_stdin)
    try:
        validate_password_strength(password)
    except ValueError as e:
        print(f"❌ {e}")
        sys.exit(1)

    init_db()
    if not create_or_reset_admin(args.username, password):
        sys.exit(1)


if __name__ == "__main__":
    main()
