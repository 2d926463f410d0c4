"""
Create Admin Script
Creates an admin (or reuses an existing one) and prints a bearer token
registered in that admin's active-token list.

    python -m app.scripts.create_admin --username ali --role superadmin
"""

import argparse
import logging
import sys

from app.database import Base, SessionLocal, engine
from app.models.admin import Admin
from app.models import participation, teacher, user, workshop  # noqa: F401  (register tables)
from app.utils.auth import issue_token
from app.utils.permissions import Role

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_admin(db, username: str, role: Role) -> Admin:
    admin = db.query(Admin).filter(Admin.username == username).first()
    if admin:
        if admin.role != role.value:
            logger.info("Changing role of %s: %s -> %s", username, admin.role, role.value)
            admin.role = role.value
            db.commit()
        return admin

    admin = Admin(username=username, role=role.value)
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Created admin %s (%s)", username, role.value)
    return admin


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create an admin and mint a bearer token")
    parser.add_argument("--username", required=True)
    parser.add_argument("--role", choices=[r.value for r in Role], default=Role.ADMIN.value)
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = create_admin(db, args.username, Role(args.role))
        token = issue_token(db, admin)
    except Exception as e:
        logger.error("Error creating admin: %s", e)
        sys.exit(1)
    finally:
        db.close()

    print(token)


if __name__ == "__main__":
    main()
