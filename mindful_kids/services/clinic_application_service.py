# mindful_kids/services/clinic_application_service.py
import logging
import re
import secrets
from pathlib import Path
from typing import Optional, List, Dict, Any

from fastapi import UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..config import get_settings
from ..core.timeutils import utcnow
from ..security import (
    DOCUMENT_TOKEN_TYPE, TokenExpired, TokenInvalid, create_document_token, decode_token
)
from .email_service import EmailService, build_set_password_url
from .storage_service import CLINIC_APPLICATIONS_DIR, DocumentStorage
from .workflow import ensure_transition

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ALREADY_REVIEWED = "Application has already been reviewed."


def _clean(value: Optional[str], max_length: int) -> str:
    if not isinstance(value, str):
        return ""
    return value.strip()[:max_length]


def is_valid_email(value: str) -> bool:
    return bool(value) and len(value) <= 255 and EMAIL_PATTERN.match(value) is not None


async def submit(db: Session, storage: DocumentStorage, document: Optional[UploadFile],
                 clinic_name: Optional[str], country: Optional[str], contact_email: Optional[str],
                 contact_phone: Optional[str] = None, description: Optional[str] = None) -> models.ClinicApplication:
    """Public submission: validate the form, store the document under a random name, create a pending row."""
    if document is None or not document.filename:
        raise crud.CRUDError('No file uploaded. Send a single file in field "document".')

    clinic_name = _clean(clinic_name, 255)
    country = _clean(country, 255)
    contact_email = _clean(contact_email, 255)
    if not clinic_name or not country or not contact_email:
        raise crud.CRUDError("clinic_name, country, and contact_email are required.")
    if not is_valid_email(contact_email):
        raise crud.CRUDError("contact_email must be a valid email address.")

    stored_name = await storage.save(document, CLINIC_APPLICATIONS_DIR)
    application = models.ClinicApplication(
        clinic_name=clinic_name,
        country=country,
        contact_email=contact_email,
        contact_phone=_clean(contact_phone, 50) or None,
        description=_clean(description, 5000) or None,
        document_storage_path=stored_name,
        status=models.ClinicApplicationStatus.pending,
        submitted_at=utcnow(),
    )
    db.add(application)
    try:
        crud.commit(db, "creating clinic application")
    except SQLAlchemyError:
        storage.delete(CLINIC_APPLICATIONS_DIR, stored_name)
        raise
    db.refresh(application)
    logger.info(f"Clinic application {application.id} submitted for '{clinic_name}' ({country})")
    return application


def list_applications(db: Session, status: Optional[models.ClinicApplicationStatus] = None,
                      country: Optional[str] = None, limit: int = 50) -> List[models.ClinicApplication]:
    query = db.query(models.ClinicApplication)
    if status:
        query = query.filter(models.ClinicApplication.status == status)
    if country:
        query = query.filter(models.ClinicApplication.country == country.strip())
    return query.order_by(models.ClinicApplication.submitted_at.desc()).limit(min(max(limit, 1), 100)).all()


def get_application(db: Session, application_id: str) -> models.ClinicApplication:
    application = db.get(models.ClinicApplication, application_id)
    if not application:
        raise crud.NotFoundError("Clinic application not found")
    return application


def clinic_slug(application: models.ClinicApplication) -> str:
    """Slug from the clinic name plus the first 8 characters of the application id."""
    return f"{crud.slugify(application.clinic_name)}-{application.id[:8]}"


def _approve(db: Session, admin: models.User, application: models.ClinicApplication, now):
    clinic = models.Clinic(
        name=application.clinic_name,
        slug=clinic_slug(application),
        description=application.description,
        country=application.country,
        is_active=True,
        verification_status=models.ClinicVerificationStatus.verified,
        verified_at=now,
        verified_by=admin.id,
    )
    db.add(clinic)
    db.flush()

    invite = models.ClinicInvite(
        clinic_id=clinic.id,
        contact_email=application.contact_email.lower(),
        token=secrets.token_hex(32),
        expires_at=crud.invite_expiry(get_settings().clinic_invite_expires_days),
    )
    db.add(invite)

    application.clinic_id = clinic.id
    application.invite_token = invite.token
    crud.create_admin_audit_log(
        db,
        admin_user_id=admin.id,
        action_type="clinic_application_approved",
        target_type="clinic_application",
        target_id=application.id,
        details={"clinic_id": clinic.id},
    )
    return clinic, invite


async def review(db: Session, admin: models.User, application_id: str, decision: schemas.ApplicationReview,
                 email_service: EmailService) -> Dict[str, Any]:
    """Approve (creates a verified clinic and a set-password invite) or reject a pending application."""
    application = get_application(db, application_id)
    target = models.ClinicApplicationStatus(decision.status.value)
    ensure_transition("clinic_application", application.status, target, ALREADY_REVIEWED)

    now = utcnow()
    approved = target == models.ClinicApplicationStatus.approved
    reason = None
    if not approved and decision.rejection_reason:
        reason = decision.rejection_reason.strip()[:2000] or None

    clinic = invite = None
    try:
        updated = db.query(models.ClinicApplication).filter(
            models.ClinicApplication.id == application.id,
            models.ClinicApplication.status == models.ClinicApplicationStatus.pending,
        ).update({
            models.ClinicApplication.status: target,
            models.ClinicApplication.reviewed_at: now,
            models.ClinicApplication.reviewed_by: admin.id,
            models.ClinicApplication.rejection_reason: reason,
        }, synchronize_session=False)
        if updated != 1:
            raise crud.InvalidStateError(ALREADY_REVIEWED)

        if approved:
            clinic, invite = _approve(db, admin, application, now)
        else:
            crud.create_admin_audit_log(
                db,
                admin_user_id=admin.id,
                action_type="clinic_application_rejected",
                target_type="clinic_application",
                target_id=application.id,
                details={"rejection_reason": reason} if reason else None,
            )
        crud.commit(db, "reviewing clinic application")
    except (crud.CRUDError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(application)
    logger.info(f"Clinic application {application.id} {target.value} by admin {admin.id}")

    result = {
        "message": "Application approved and clinic created." if approved else "Application rejected.",
        "application": schemas.ClinicApplicationResponse.model_validate(application),
    }
    if approved:
        db.refresh(clinic)
        result["clinic"] = schemas.ClinicResponse.model_validate(clinic)
        delivery = await email_service.send_clinic_approval_invite(
            invite.contact_email, clinic.name, build_set_password_url(invite.token)
        )
        result["invite"] = schemas.InviteDelivery(**delivery)
    return result


def document_link(db: Session, application_id: str) -> Dict[str, Any]:
    """Short-lived capability URL for the application's document. Never exposes the stored path."""
    application = get_application(db, application_id)
    if not application.has_document:
        raise crud.NotFoundError("No document for this application.")
    settings = get_settings()
    token = create_document_token(application.id)
    return {
        "url": f"{settings.public_base_url}/api/v1/admin/clinic-applications/document?token={token}",
        "expires_in_seconds": settings.document_link_expires_seconds,
    }


def resolve_document(db: Session, storage: DocumentStorage, token: Optional[str]) -> Path:
    if not token:
        raise crud.UnauthorizedError("Token required.")
    try:
        payload = decode_token(token, DOCUMENT_TOKEN_TYPE)
    except TokenExpired:
        raise crud.UnauthorizedError("Link expired. Request a new document link.")
    except TokenInvalid:
        logger.warning("Rejected invalid clinic document token")
        raise crud.UnauthorizedError("Invalid token.")

    application = db.get(models.ClinicApplication, payload["sub"])
    if not application or not application.document_storage_path:
        raise crud.NotFoundError("Document not found.")
    return storage.resolve(CLINIC_APPLICATIONS_DIR, application.document_storage_path, "Invalid path.")
