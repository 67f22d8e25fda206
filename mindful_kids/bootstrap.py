# Initializes the bootstrap admin account on startup.
import logging

from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .database import SessionLocal
from . import crud, models
from .security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


def create_or_update_admin(session_factory=SessionLocal):
    """Ensure ADMIN_EMAIL exists as an admin with ADMIN_PASSWORD. No-op when either is unset."""
    settings = get_settings()
    if not settings.admin_email or not settings.admin_password:
        logger.info("ADMIN_EMAIL/ADMIN_PASSWORD not set; skipping admin bootstrap")
        return None

    db = session_factory()
    try:
        user = crud.get_user_by_email(db, settings.admin_email)
        if user is None:
            user = crud.create_user(
                db, email=settings.admin_email, password=settings.admin_password,
                name="Administrator", role=models.UserRole.admin,
            )
            logger.info(f"Bootstrap admin '{user.email}' created.")
            return user.id

        changed = False
        if user.role != models.UserRole.admin:
            user.role = models.UserRole.admin
            changed = True
        if not verify_password(settings.admin_password, user.password_hash):
            user.password_hash = get_password_hash(settings.admin_password)
            changed = True
        if changed:
            crud.commit(db, "updating bootstrap admin")
            logger.info(f"Bootstrap admin '{user.email}' updated.")
        return user.id
    except SQLAlchemyError as e:
        logger.error(f"CRITICAL: Error during admin bootstrap: {e}")
        raise
    finally:
        db.close()
