# mindful_kids/services/therapist_application_service.py
import logging
from typing import Optional, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..core.timeutils import utcnow
from .workflow import ensure_transition

logger = logging.getLogger(__name__)

NOT_REVIEWABLE = "Only pending applications can be approved or rejected"

EDITABLE_FIELDS = (
    "professional_name", "email", "phone", "specialty", "specialization", "bio", "location",
    "languages", "profile_image_url", "video_urls", "contact_info",
)


def get_for_user(db: Session, user_id: str) -> Optional[models.TherapistApplication]:
    return db.query(models.TherapistApplication).filter(models.TherapistApplication.user_id == user_id).first()


def get_application(db: Session, application_id: str) -> models.TherapistApplication:
    application = db.get(models.TherapistApplication, application_id)
    if not application:
        raise crud.NotFoundError("Application not found")
    return application


def list_applications(db: Session, status: Optional[models.ApplicationStatus] = None,
                      limit: int = 50) -> List[models.TherapistApplication]:
    query = db.query(models.TherapistApplication)
    if status:
        query = query.filter(models.TherapistApplication.status == status)
    return query.order_by(
        models.TherapistApplication.submitted_at.desc(), models.TherapistApplication.created_at.desc()
    ).limit(min(limit, 100)).all()


def to_response(application: models.TherapistApplication, admin: bool = False):
    schema = schemas.AdminTherapistApplicationResponse if admin else schemas.TherapistApplicationResponse
    data = schema.model_validate(application)
    if application.psychologist is not None:
        data.psychologist_verification_status = application.psychologist.verification_status
    if admin and application.user is not None:
        data.user_email = application.user.email
        data.user_name = application.user.name
    return data


def _replace_clinic_affiliations(db: Session, application: models.TherapistApplication,
                                 affiliations: List[schemas.ClinicAffiliationIn]) -> None:
    # Last entry wins when the same clinic is listed twice
    by_clinic = {aff.clinic_id: aff for aff in affiliations}
    if by_clinic:
        found = {cid for (cid,) in db.query(models.Clinic.id).filter(models.Clinic.id.in_(list(by_clinic))).all()}
        missing = [cid for cid in by_clinic if cid not in found]
        if missing:
            raise crud.NotFoundError(f"Clinic not found: {missing[0]}")

    application.clinic_affiliations.clear()
    db.flush()
    for aff in by_clinic.values():
        application.clinic_affiliations.append(models.TherapistApplicationClinic(
            clinic_id=aff.clinic_id,
            role_label=aff.role_label,
            is_primary=aff.is_primary,
        ))


def upsert_draft(db: Session, user: models.User, payload: schemas.TherapistApplicationUpsert) -> models.TherapistApplication:
    """Create the user's draft, or overwrite it while it is still a draft."""
    application = get_for_user(db, user.id)
    changes = payload.model_dump(exclude_unset=True, exclude={"credentials", "clinic_affiliations"})

    try:
        if application is None:
            if not payload.professional_name or not payload.email:
                raise crud.CRUDError("professional_name and email are required")
            application = models.TherapistApplication(user_id=user.id, status=models.ApplicationStatus.draft)
            db.add(application)
        elif application.status != models.ApplicationStatus.draft:
            raise crud.InvalidStateError("Application already submitted; cannot edit.")

        for key in EDITABLE_FIELDS:
            if key in changes:
                value = changes[key]
                if value is None and key in ("specialization", "languages", "video_urls"):
                    value = []
                if value is None and key == "contact_info":
                    value = {}
                setattr(application, key, value)

        if payload.credentials is not None:
            application.credentials = [c.model_dump(mode="json", exclude_none=True) for c in payload.credentials]
        if payload.clinic_affiliations is not None:
            _replace_clinic_affiliations(db, application, payload.clinic_affiliations)

        crud.commit(db, "saving therapist application")
    except crud.CRUDError:
        db.rollback()
        raise
    db.refresh(application)
    return application


def submit(db: Session, user: models.User) -> models.TherapistApplication:
    application = get_for_user(db, user.id)
    if not application:
        raise crud.NotFoundError("No application found. Create a draft first.")
    ensure_transition("therapist_application", application.status, models.ApplicationStatus.pending,
                      "Application already submitted or reviewed.")

    updated = db.query(models.TherapistApplication).filter(
        models.TherapistApplication.id == application.id,
        models.TherapistApplication.status == models.ApplicationStatus.draft,
    ).update({
        models.TherapistApplication.status: models.ApplicationStatus.pending,
        models.TherapistApplication.submitted_at: utcnow(),
    }, synchronize_session=False)
    if updated != 1:
        db.rollback()
        raise crud.InvalidStateError("Application already submitted or reviewed.")

    crud.commit(db, "submitting therapist application")
    db.refresh(application)
    logger.info(f"Therapist application {application.id} submitted by user {user.id}")
    return application


def _credential_rows(psychologist_id: str, entries, reviewer_id: str, now) -> List[models.ProfessionalCredential]:
    rows = []
    for entry in entries or []:
        credential = schemas.TherapistCredentialIn.model_validate(entry)
        credential_type = (credential.type or "license").strip()
        if not credential_type:
            continue
        rows.append(models.ProfessionalCredential(
            psychologist_id=psychologist_id,
            credential_type=credential_type,
            issuing_country=credential.issuing_country or credential.country,
            issuer=credential.issuer,
            license_number=credential.number,
            expires_at=credential.expires_at,
            document_url=credential.document_url,
            verification_status=models.CredentialStatus.verified,
            verified_by=reviewer_id,
            verified_at=now,
        ))
    return rows


def review(db: Session, admin: models.User, application_id: str,
           decision: schemas.ApplicationReview) -> models.TherapistApplication:
    """Approve or reject a pending application in one transaction.

    Approval creates the public Psychologist profile, its verified credentials and
    active clinic affiliations. A concurrent second review loses the conditional
    update and gets the same error as a late one.
    """
    application = get_application(db, application_id)
    target = models.ApplicationStatus(decision.status.value)
    ensure_transition("therapist_application", application.status, target, NOT_REVIEWABLE)

    now = utcnow()
    approved = target == models.ApplicationStatus.approved
    rejection_reason = None
    if not approved and decision.rejection_reason:
        rejection_reason = decision.rejection_reason.strip()[:2000] or None

    try:
        updated = db.query(models.TherapistApplication).filter(
            models.TherapistApplication.id == application.id,
            models.TherapistApplication.status == models.ApplicationStatus.pending,
        ).update({
            models.TherapistApplication.status: target,
            models.TherapistApplication.reviewed_at: now,
            models.TherapistApplication.reviewed_by: admin.id,
            models.TherapistApplication.rejection_reason: rejection_reason,
        }, synchronize_session=False)
        if updated != 1:
            raise crud.InvalidStateError(NOT_REVIEWABLE)

        details = {"application_id": application.id}
        if approved:
            psychologist = models.Psychologist(
                user_id=application.user_id,
                name=application.professional_name,
                email=application.email,
                phone=application.phone,
                specialty=application.specialty,
                specialization=list(application.specialization or []),
                bio=application.bio,
                location=application.location,
                languages=list(application.languages or []),
                profile_image=application.profile_image_url,
                video_urls=list(application.video_urls or []),
                contact_info=dict(application.contact_info or {}),
                is_active=True,
                verification_status=models.VerificationStatus.verified,
                verified_at=now,
                last_verification_review_at=now,
            )
            db.add(psychologist)
            db.flush()

            db.add_all(_credential_rows(psychologist.id, application.credentials, admin.id, now))
            for aff in application.clinic_affiliations:
                crud.add_affiliation(db, psychologist.id, aff.clinic_id, aff.role_label, aff.is_primary,
                                     auto_commit=False)
            application.psychologist_id = psychologist.id
            details["psychologist_id"] = psychologist.id
        else:
            details = {"rejection_reason": rejection_reason}

        crud.create_admin_audit_log(
            db,
            admin_user_id=admin.id,
            action_type="therapist_application_approved" if approved else "therapist_application_rejected",
            target_type="therapist_application",
            target_id=application.id,
            details=details,
        )
        crud.commit(db, "reviewing therapist application")
    except (crud.CRUDError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(application)
    logger.info(f"Therapist application {application.id} {target.value} by admin {admin.id}")
    return application
