from __future__ import annotations

import argparse
import getpass
import os
import sys

# Allow running from the repo root as well as from backend/.
sys.path.append(os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

from sqlalchemy import or_, select

from quizdeck.db import session as session_module
from quizdeck.models.user import User, UserRole
from quizdeck.core.security import hash_password


def ensure_admin(*, username: str, email: str, password: str) -> tuple[User, bool]:
    """Create the admin account, or promote an existing user with that name/email."""
    with session_module.SessionLocal() as db:
        user = db.scalar(select(User).where(or_(User.username == username, User.email == email.lower())))
        if user is not None:
            created = False
            user.role = UserRole.admin
        else:
            created = True
            user = User(
                username=username,
                email=email.lower(),
                role=UserRole.admin,
                password_hash=hash_password(password),
            )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user, created


def main() -> None:
    p = argparse.ArgumentParser(description="Create or promote a platform administrator")
    p.add_argument("username")
    p.add_argument("email")
    p.add_argument("--password", default=None, help="Prompted for when omitted")
    args = p.parse_args()

    password = args.password or getpass.getpass("Admin password: ")
    user, created = ensure_admin(username=args.username, email=args.email, password=password)
    print(("created" if created else "promoted") + f" admin {user.username} ({user.id})")


if __name__ == "__main__":
    main()
