# mindful_kids/services/verification_service.py
"""Psychologist verification status and professional credential lifecycle."""
import logging
from typing import Optional, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..core.timeutils import utcnow
from .workflow import ensure_transition

logger = logging.getLogger(__name__)

NO_PROFILE = "No public profile yet. Complete and submit your application for approval."


# ==================== PSYCHOLOGISTS ====================

def get_psychologist(db: Session, psychologist_id: str) -> models.Psychologist:
    psychologist = db.get(models.Psychologist, psychologist_id)
    if not psychologist:
        raise crud.NotFoundError("Psychologist not found")
    return psychologist


def get_psychologist_for_user(db: Session, user_id: str) -> Optional[models.Psychologist]:
    return db.query(models.Psychologist).filter(
        models.Psychologist.user_id == user_id
    ).order_by(models.Psychologist.created_at.desc()).first()


def list_psychologists(db: Session, status: Optional[models.VerificationStatus] = None,
                       limit: int = 100) -> List[models.Psychologist]:
    query = db.query(models.Psychologist)
    if status:
        query = query.filter(models.Psychologist.verification_status == status)
    return query.order_by(models.Psychologist.name.asc()).limit(min(limit, 500)).all()


def set_verification_status(psychologist: models.Psychologist, target: models.VerificationStatus, now=None) -> bool:
    """Move a psychologist to ``target`` through the transition table.

    verified_at is stamped on first verification and kept afterwards.
    Returns True when the status value changed.
    """
    now = now or utcnow()
    current = psychologist.verification_status
    ensure_transition("psychologist", current, target)
    psychologist.verification_status = target
    if target == models.VerificationStatus.verified:
        if psychologist.verified_at is None:
            psychologist.verified_at = now
    if target != models.VerificationStatus.expired:
        psychologist.last_verification_review_at = now
    return current != target


def create_psychologist(db: Session, admin: models.User, data: schemas.PsychologistCreate) -> models.Psychologist:
    now = utcnow()
    psychologist = models.Psychologist(
        user_id=data.user_id,
        name=data.name.strip(),
        email=data.email,
        phone=data.phone,
        specialty=data.specialty,
        specialization=data.specialization,
        bio=data.bio,
        location=data.location,
        languages=data.languages,
        profile_image=data.profile_image,
        verification_status=data.verification_status,
        verification_expires_at=data.verification_expires_at,
        is_active=True,
    )
    if data.verification_status == models.VerificationStatus.verified:
        psychologist.verified_at = now
        psychologist.last_verification_review_at = now
    db.add(psychologist)
    db.flush()
    crud.create_admin_audit_log(
        db, admin.id, "psychologist_created", "psychologist", psychologist.id,
        {"verification_status": data.verification_status.value},
    )
    crud.commit(db, "creating psychologist")
    db.refresh(psychologist)
    return psychologist


def update_verification(db: Session, admin: models.User, psychologist_id: str,
                        patch: schemas.PsychologistVerificationUpdate) -> models.Psychologist:
    """Admin change of verification state. ``is_verified`` is accepted as a shorthand:
    true means verified, false means suspended."""
    psychologist = get_psychologist(db, psychologist_id)
    previous = psychologist.verification_status
    details = {"from": previous.value}

    target = patch.verification_status
    if target is None and patch.is_verified is not None:
        target = models.VerificationStatus.verified if patch.is_verified else models.VerificationStatus.suspended

    try:
        if target is not None:
            set_verification_status(psychologist, target)
            details["to"] = target.value
        if "verification_expires_at" in patch.model_fields_set:
            psychologist.verification_expires_at = patch.verification_expires_at
            details["verification_expires_at"] = (
                patch.verification_expires_at.isoformat() if patch.verification_expires_at else None
            )
        if patch.is_active is not None:
            psychologist.is_active = patch.is_active
            details["is_active"] = patch.is_active

        crud.create_admin_audit_log(
            db, admin.id, "psychologist_verification_updated", "psychologist", psychologist.id, details,
        )
        crud.commit(db, "updating psychologist verification")
    except (crud.CRUDError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(psychologist)
    logger.info(f"Psychologist {psychologist.id} verification {previous.value} -> "
                f"{psychologist.verification_status.value} by admin {admin.id}")
    return psychologist


# ==================== CREDENTIALS ====================

def list_credentials(db: Session, psychologist_id: str) -> List[models.ProfessionalCredential]:
    return db.query(models.ProfessionalCredential).filter(
        models.ProfessionalCredential.psychologist_id == psychologist_id
    ).order_by(models.ProfessionalCredential.created_at.desc()).all()


def get_credential(db: Session, credential_id: str, psychologist_id: Optional[str] = None) -> models.ProfessionalCredential:
    query = db.query(models.ProfessionalCredential).filter(models.ProfessionalCredential.id == credential_id)
    if psychologist_id is not None:
        query = query.filter(models.ProfessionalCredential.psychologist_id == psychologist_id)
    credential = query.first()
    if not credential:
        raise crud.NotFoundError("Credential not found")
    return credential


def submit_credential(db: Session, user: models.User, submission: schemas.CredentialSubmission):
    """Therapist credential upload in one of three modes.

    new: a fresh credential awaiting review.
    renewal: flags an existing credential for re-check; its status is untouched.
    resubmit: a new document for an existing credential, sent back to review.
    """
    psychologist = get_psychologist_for_user(db, user.id)
    if psychologist is None:
        raise crud.NotFoundError(NO_PROFILE)

    now = utcnow()
    mode = submission.mode
    try:
        if mode == "new":
            credential = models.ProfessionalCredential(
                psychologist_id=psychologist.id,
                credential_type=(submission.credential_type or "license").strip() or "license",
                issuer=submission.issuer,
                issuing_country=submission.issuing_country,
                license_number=submission.license_number,
                expires_at=submission.expires_at,
                document_url=submission.document_url,
                verification_status=models.CredentialStatus.pending,
            )
            db.add(credential)
            db.flush()
            action, message = "credential_uploaded", "Credential submitted for review."
        else:
            credential = get_credential(db, submission.credential_id, psychologist.id)
            if mode == "renewal":
                credential.renewal_requested_at = now
                action, message = "credential_renewal_requested", "Renewal requested. Our team will re-check this credential."
            else:
                ensure_transition("credential", credential.verification_status, models.CredentialStatus.pending)
                credential.verification_status = models.CredentialStatus.pending
                credential.document_url = submission.document_url
                credential.verified_at = None
                credential.verified_by = None
                if submission.expires_at is not None:
                    credential.expires_at = submission.expires_at
                action, message = "credential_uploaded", "Document resubmitted for review."

        crud.create_therapist_audit_log(
            db, user.id, action, "professional_credential", credential.id,
            {"mode": mode, "psychologist_id": psychologist.id},
        )
        crud.commit(db, "submitting credential")
    except (crud.CRUDError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(credential)
    logger.info(f"Credential {credential.id} {mode} by therapist {user.id}")
    return {"message": message, "mode": mode, "credential": credential}


def review_credential(db: Session, admin: models.User, credential_id: str,
                      review: schemas.CredentialReview) -> models.ProfessionalCredential:
    credential = get_credential(db, credential_id)
    now = utcnow()
    try:
        ensure_transition("credential", credential.verification_status, review.status)
        credential.verification_status = review.status
        if review.status == models.CredentialStatus.verified:
            credential.verified_at = now
            credential.verified_by = admin.id
        if review.status in (models.CredentialStatus.verified, models.CredentialStatus.rejected):
            credential.renewal_requested_at = None
        if review.expires_at is not None:
            credential.expires_at = review.expires_at

        crud.create_admin_audit_log(
            db, admin.id, f"credential_{review.status.value}", "professional_credential", credential.id,
            {"psychologist_id": credential.psychologist_id},
        )
        crud.commit(db, "reviewing credential")
    except (crud.CRUDError, SQLAlchemyError):
        db.rollback()
        raise
    db.refresh(credential)
    return credential


def verified_country_map(db: Session, psychologist_ids: List[str]) -> dict:
    """Issuing country of each psychologist's most recently verified credential."""
    if not psychologist_ids:
        return {}
    rows = db.query(
        models.ProfessionalCredential.psychologist_id, models.ProfessionalCredential.issuing_country
    ).filter(
        models.ProfessionalCredential.psychologist_id.in_(psychologist_ids),
        models.ProfessionalCredential.verification_status == models.CredentialStatus.verified,
        models.ProfessionalCredential.issuing_country.isnot(None),
    ).order_by(models.ProfessionalCredential.verified_at.desc()).all()
    countries = {}
    for psychologist_id, country in rows:
        countries.setdefault(psychologist_id, country)
    return countries
