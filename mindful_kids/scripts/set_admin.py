"""Promote an existing user to admin.

    ALLOW_ADMIN_PROMOTION=true python -m mindful_kids.scripts.set_admin user@example.com
"""
import argparse
import logging
import sys

from .. import crud, models
from ..config import get_settings
from ..core.logging import setup_logging
from ..database import SessionLocal

logger = logging.getLogger(__name__)


def promote(db, email: str) -> models.User:
    user = crud.get_user_by_email(db, email)
    if not user:
        raise crud.NotFoundError(f"No user with email {email}")
    crud.set_user_role(db, user.id, models.UserRole.admin)
    crud.create_admin_audit_log(db, None, "user_role_updated", "user", user.id,
                                {"role": "admin", "source": "set_admin script"})
    crud.commit(db, "promoting user to admin")
    db.refresh(user)
    return user


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Promote a user to admin.")
    parser.add_argument("email")
    args = parser.parse_args(argv)

    setup_logging()
    if not get_settings().allow_admin_promotion:
        logger.error("Admin promotion is disabled. Set ALLOW_ADMIN_PROMOTION=true to use this script.")
        return 2

    db = SessionLocal()
    try:
        user = promote(db, args.email)
    except crud.NotFoundError as e:
        logger.error(str(e))
        return 1
    finally:
        db.close()

    print(f"{user.email} is now an admin.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
