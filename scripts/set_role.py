from __future__ import annotations

import sys

from sqlalchemy import select

from workcafe.db.session import SessionLocal
from workcafe.models.enums import UserRole
from workcafe.models.users import UserAuth


def main() -> int:
    if len(sys.argv) != 3:
        print("Usage: python scripts/set_role.py <email|username> <role: user|admin>")
        return 2

    who, role = sys.argv[1], sys.argv[2]
    if role not in {r.value for r in UserRole}:
        print(f"Unknown role: {role}")
        return 2

    db = SessionLocal()
    try:
        user = db.scalar(select(UserAuth).where((UserAuth.email == who.lower()) | (UserAuth.username == who)))
        if not user:
            print("User not found")
            return 1
        user.role = role
        db.commit()
        # Existing tokens still carry the old role until the user logs in again.
        print(f"Role updated: {user.email} -> {role}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
