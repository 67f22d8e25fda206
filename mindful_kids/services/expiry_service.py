# mindful_kids/services/expiry_service.py
"""Re-verification sweep over psychologist verification and credential expiry dates."""
import logging
from datetime import timedelta
from typing import Dict, Any, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud, models
from ..core.timeutils import utcnow, as_utc
from .workflow import ensure_transition

logger = logging.getLogger(__name__)

WARN_DAYS = 30


def _iso(value):
    value = as_utc(value)
    return value.isoformat() if value else None


def _expired_psychologists(db: Session, now):
    return db.query(models.Psychologist).filter(
        models.Psychologist.verification_status == models.VerificationStatus.verified,
        models.Psychologist.verification_expires_at.isnot(None),
        models.Psychologist.verification_expires_at < now,
    ).all()


def _expiring_psychologists(db: Session, now, horizon):
    return db.query(models.Psychologist).filter(
        models.Psychologist.verification_status == models.VerificationStatus.verified,
        models.Psychologist.verification_expires_at.isnot(None),
        models.Psychologist.verification_expires_at >= now,
        models.Psychologist.verification_expires_at < horizon,
    ).all()


def _credentials(db: Session, *conditions):
    return db.query(models.ProfessionalCredential, models.Psychologist.name).join(
        models.Psychologist, models.Psychologist.id == models.ProfessionalCredential.psychologist_id
    ).filter(
        models.ProfessionalCredential.verification_status == models.CredentialStatus.verified,
        models.ProfessionalCredential.expires_at.isnot(None),
        *conditions,
    ).all()


def _credential_entry(credential: models.ProfessionalCredential, psychologist_name: str) -> Dict[str, Any]:
    return {
        "type": "credential",
        "id": credential.id,
        "psychologist_id": credential.psychologist_id,
        "psychologist_name": psychologist_name,
        "credential_type": credential.credential_type,
        "issuing_country": credential.issuing_country,
        "at": _iso(credential.expires_at),
    }


def check_verification_expiry(db: Session, apply: bool = False, warn_days: int = WARN_DAYS) -> Dict[str, Any]:
    """Report expired and soon-to-expire verifications; with ``apply`` mark the expired ones.

    Only rows still in ``verified`` are considered, so a second run finds nothing
    new to expire. Each row is expired inside its own savepoint and a failure is
    reported under ``errors`` without stopping the sweep.
    """
    now = utcnow()
    horizon = now + timedelta(days=warn_days)

    expired_psychologists = _expired_psychologists(db, now)
    expired_credentials = _credentials(db, models.ProfessionalCredential.expires_at < now)

    expired: List[Dict[str, Any]] = [
        {"type": "psychologist", "id": p.id, "name": p.name, "at": _iso(p.verification_expires_at)}
        for p in expired_psychologists
    ] + [_credential_entry(c, name) for c, name in expired_credentials]

    expiring: List[Dict[str, Any]] = [
        {"type": "psychologist", "id": p.id, "name": p.name, "at": _iso(p.verification_expires_at)}
        for p in _expiring_psychologists(db, now, horizon)
    ] + [
        _credential_entry(c, name)
        for c, name in _credentials(
            db,
            models.ProfessionalCredential.expires_at >= now,
            models.ProfessionalCredential.expires_at < horizon,
        )
    ]

    errors: List[Dict[str, Any]] = []
    if apply:
        for psychologist in expired_psychologists:
            try:
                with db.begin_nested():
                    ensure_transition("psychologist", psychologist.verification_status, models.VerificationStatus.expired)
                    psychologist.verification_status = models.VerificationStatus.expired
                logger.info(f"Expired psychologist: {psychologist.id} {psychologist.name}")
            except (crud.CRUDError, SQLAlchemyError) as e:
                logger.error(f"Could not expire psychologist {psychologist.id}: {e}")
                errors.append({"type": "psychologist", "id": psychologist.id, "error": str(e)})

        for credential, _ in expired_credentials:
            try:
                with db.begin_nested():
                    ensure_transition("credential", credential.verification_status, models.CredentialStatus.expired)
                    credential.verification_status = models.CredentialStatus.expired
                logger.info(f"Expired credential: {credential.id} (psychologist {credential.psychologist_id})")
            except (crud.CRUDError, SQLAlchemyError) as e:
                logger.error(f"Could not expire credential {credential.id}: {e}")
                errors.append({"type": "credential", "id": credential.id, "error": str(e)})

        crud.commit(db, "applying verification expiry")

    logger.info(f"Verification expiry check: {len(expired)} expired, {len(expiring)} expiring within "
                f"{warn_days} days, applied={apply}, errors={len(errors)}")
    return {"expiring": expiring, "expired": expired, "applied": apply, "errors": errors}
