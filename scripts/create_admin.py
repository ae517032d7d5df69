"""Create an admin account from the command line.

Usage: python scripts/create_admin.py <email> <password> [name]
"""
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from acadigo.db import Base, engine, session_scope
from acadigo.errors import EmailTaken
from acadigo.models import UserRole
from acadigo.services.users import create_user


def main(argv):
    if len(argv) < 3:
        print(__doc__.strip())
        return 1

    email, password = argv[1], argv[2]
    name = argv[3] if len(argv) > 3 else "Administrator"

    Base.metadata.create_all(bind=engine)
    try:
        with session_scope() as db:
            user = create_user(db, name=name, email=email, password=password, role=UserRole.ADMIN)
            print(f"Admin created: id={user.id} email={user.email}")
    except EmailTaken:
        print(f"A user with email {email} already exists")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
