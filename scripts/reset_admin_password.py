"""Reset an admin's password and reactivate the account.

Usage: python scripts/reset_admin_password.py <email> <new password>
"""
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from acadigo.db import session_scope
from acadigo.models import UserRole
from acadigo.security import hash_password
from acadigo.services.auth import get_user_by_email


def main(argv):
    if len(argv) < 3:
        print(__doc__.strip())
        return 1

    email, password = argv[1], argv[2]
    with session_scope() as db:
        user = get_user_by_email(db, email)
        if user is None or user.role != UserRole.ADMIN:
            print(f"No admin account for {email}")
            return 1
        user.password_hash = hash_password(password)
        user.active = True
        print(f"Password reset for {user.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
