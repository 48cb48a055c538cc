#!/usr/bin/env python3
"""
Grant (or revoke) the admin role for a registered user.

The user must have signed in and registered a profile first, since the
profile id is the Firebase uid.

Usage:
    cd backend
    python scripts/setup_admin_user.py someone@example.com
    python scripts/setup_admin_user.py someone@example.com --revoke
"""

import sys
import argparse
from datetime import datetime
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from eduvox.database import SessionLocal, init_db
from eduvox.models.models import UserProfile


def set_role(email: str, role: str) -> bool:
    db = SessionLocal()
    try:
        user = db.query(UserProfile).filter(UserProfile.email == email).first()
        if not user:
            return False
        user.role = role
        user.updated_at = datetime.utcnow()
        db.commit()
        return True
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Grant or revoke the admin role")
    parser.add_argument("email", help="Email of a registered user")
    parser.add_argument("--revoke", action="store_true", help="Set the user back to student")
    args = parser.parse_args()

    init_db()
    role = "student" if args.revoke else "admin"
    if not set_role(args.email, role):
        print(f"No registered user with email {args.email}")
        sys.exit(1)
    print(f"{args.email} is now {role}")


if __name__ == "__main__":
    main()
