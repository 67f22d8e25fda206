# mindful_kids/services/invite_service.py
import logging
from typing import Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud, models
from ..core.timeutils import utcnow

logger = logging.getLogger(__name__)

INVALID_INVITE = "Invalid or expired invite link. Request a new one from the admin."
ACCOUNT_EXISTS = "An account with this email already exists. Sign in with your password."


def _consume(db: Session, invite: models.ClinicInvite) -> None:
    """Delete the invite only if it is still unused and unexpired."""
    deleted = db.query(models.ClinicInvite).filter(
        models.ClinicInvite.id == invite.id,
        models.ClinicInvite.expires_at > utcnow(),
    ).delete(synchronize_session=False)
    if deleted != 1:
        raise crud.UnauthorizedError(INVALID_INVITE)


def accept_invite(db: Session, token: str, password: str) -> Tuple[models.User, models.ClinicAdmin]:
    """Create the clinic admin account for an invite and consume the invite.

    Unknown, expired and already used tokens all get the same message.
    """
    invite = crud.get_valid_invite(db, token)
    if invite is None:
        logger.warning("Rejected unknown or expired clinic invite token")
        raise crud.UnauthorizedError(INVALID_INVITE)

    email = invite.contact_email.strip().lower()
    clinic_id = invite.clinic_id
    try:
        if crud.get_user_by_email(db, email):
            _consume(db, invite)
            crud.commit(db, "consuming clinic invite")
            raise crud.ConflictError(ACCOUNT_EXISTS)

        _consume(db, invite)
        user = crud.create_user(
            db, email=email, password=password, name=f"Clinic ({email})",
            role=models.UserRole.clinic_admin, auto_commit=False,
        )
        link = crud.add_clinic_admin(db, user.id, clinic_id, auto_commit=False)
        crud.commit(db, "accepting clinic invite")
    except (crud.CRUDError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(user)
    logger.info(f"Clinic invite accepted: user {user.id} now administers clinic {clinic_id}")
    return user, link
