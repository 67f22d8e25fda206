# mindful_kids/routers/admin.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from .. import crud, schemas, models
from ..database import get_db
from ..security import require_admin
from ..services import (
    expiry_service, report_service, therapist_application_service, verification_service
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
    responses={403: {"description": "Admin role required"}},
)


@router.get("/dashboard", response_model=schemas.AdminDashboardStats)
def read_dashboard(db: Session = Depends(get_db)):
    return crud.get_admin_dashboard_stats(db)


# ==================== THERAPIST APPLICATIONS ====================

@router.get("/therapist-applications", response_model=List[schemas.AdminTherapistApplicationResponse])
def read_therapist_applications(
    status: Optional[models.ApplicationStatus] = None,
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    applications = therapist_application_service.list_applications(db, status=status, limit=limit)
    return [therapist_application_service.to_response(a, admin=True) for a in applications]


@router.get("/therapist-applications/{application_id}", response_model=schemas.AdminTherapistApplicationResponse)
def read_therapist_application(application_id: str, db: Session = Depends(get_db)):
    application = therapist_application_service.get_application(db, application_id)
    return therapist_application_service.to_response(application, admin=True)


@router.patch("/therapist-applications/{application_id}", response_model=schemas.AdminTherapistApplicationResponse)
def review_therapist_application(
    application_id: str,
    decision: schemas.ApplicationReview,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin)
):
    """Approve or reject. Approval publishes a verified profile with the submitted credentials and clinics."""
    application = therapist_application_service.review(db, admin, application_id, decision)
    return therapist_application_service.to_response(application, admin=True)


# ==================== PSYCHOLOGISTS & CREDENTIALS ====================

@router.get("/psychologists", response_model=List[schemas.PsychologistAdminView])
def read_psychologists(
    verification_status: Optional[models.VerificationStatus] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    return verification_service.list_psychologists(db, status=verification_status, limit=limit)


@router.post("/psychologists", response_model=schemas.PsychologistAdminView, status_code=status.HTTP_201_CREATED)
def create_psychologist(
    payload: schemas.PsychologistCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin)
):
    return verification_service.create_psychologist(db, admin, payload)


@router.patch("/psychologists/{psychologist_id}", response_model=schemas.PsychologistAdminView)
def update_psychologist_verification(
    psychologist_id: str,
    patch: schemas.PsychologistVerificationUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin)
):
    return verification_service.update_verification(db, admin, psychologist_id, patch)


@router.get("/psychologists/{psychologist_id}/credentials", response_model=List[schemas.CredentialResponse])
def read_psychologist_credentials(psychologist_id: str, db: Session = Depends(get_db)):
    verification_service.get_psychologist(db, psychologist_id)
    return verification_service.list_credentials(db, psychologist_id)


@router.patch("/credentials/{credential_id}", response_model=schemas.CredentialResponse)
def review_credential(
    credential_id: str,
    review: schemas.CredentialReview,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin)
):
    return verification_service.review_credential(db, admin, credential_id, review)


@router.get("/verification-expiry", response_model=schemas.ExpiryReport)
def read_verification_expiry(
    warn_days: int = Query(expiry_service.WARN_DAYS, ge=1, le=365),
    db: Session = Depends(get_db)
):
    """Dry run of the expiry job. Nothing is changed; run the job with --apply for that."""
    return expiry_service.check_verification_expiry(db, apply=False, warn_days=warn_days)


# ==================== CLINICS ====================

@router.get("/clinics", response_model=List[schemas.ClinicResponse])
def read_all_clinics(
    country: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(100, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return crud.get_clinics(db, is_active=None, country=country, search=search, limit=limit)


@router.post("/clinics", response_model=schemas.ClinicResponse, status_code=status.HTTP_201_CREATED)
def create_clinic(
    payload: schemas.ClinicCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin)
):
    """Admin-created clinics are verified immediately."""
    clinic = crud.create_clinic(db, payload, verified_by=admin.id, auto_commit=False)
    crud.create_admin_audit_log(db, admin.id, "clinic_created", "clinic", clinic.id, {"slug": clinic.slug})
    crud.commit(db, "creating clinic")
    db.refresh(clinic)
    return clinic


@router.get("/clinics/{clinic_id}/admins", response_model=List[schemas.ClinicAdminResponse])
def read_clinic_admins(clinic_id: str, db: Session = Depends(get_db)):
    crud.get_clinic(db, clinic_id)
    return crud.get_clinic_admins(db, clinic_id)


@router.post("/clinics/{clinic_id}/admins", response_model=schemas.ClinicAdminResponse,
             status_code=status.HTTP_201_CREATED)
def add_clinic_admin(
    clinic_id: str,
    payload: schemas.ClinicAdminAssign,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin)
):
    crud.get_clinic(db, clinic_id)
    if not crud.get_user(db, payload.user_id):
        raise crud.NotFoundError("User not found")
    link = crud.add_clinic_admin(db, payload.user_id, clinic_id, auto_commit=False)
    crud.create_admin_audit_log(db, admin.id, "clinic_admin_added", "clinic", clinic_id, {"user_id": payload.user_id})
    crud.commit(db, "adding clinic admin")
    db.refresh(link)
    return link


@router.delete("/clinics/{clinic_id}/admins/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_clinic_admin(
    clinic_id: str,
    user_id: str,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin)
):
    crud.remove_clinic_admin(db, user_id, clinic_id)
    logger.info(f"User {user_id} removed as admin of clinic {clinic_id} by admin {admin.id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ==================== REPORTS ====================

@router.get("/reports", response_model=List[schemas.AdminReportResponse])
def read_reports(
    status: Optional[models.ReportStatus] = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db)
):
    return [report_service.to_admin_response(r) for r in report_service.list_reports(db, status=status, limit=limit)]


@router.get("/reports/{report_id}", response_model=schemas.AdminReportResponse)
def read_report(report_id: str, db: Session = Depends(get_db)):
    return report_service.to_admin_response(report_service.get_report(db, report_id))


@router.patch("/reports/{report_id}", response_model=schemas.ReportUpdated)
def update_report(
    report_id: str,
    patch: schemas.ReportUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin)
):
    """Moderate a report. Suspension and revocation actions also change the professional's verification."""
    return report_service.update_report(db, admin, report_id, patch)


# ==================== AUDIT & USERS ====================

@router.get("/audit-logs", response_model=List[schemas.AdminAuditLogResponse])
def read_audit_logs(
    action_type: Optional[str] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    return crud.get_admin_audit_logs(db, action_type=action_type, target_type=target_type,
                                     target_id=target_id, limit=limit)


@router.patch("/users/{user_id}/role", response_model=schemas.UserPublic)
def update_user_role(
    user_id: str,
    payload: schemas.RoleUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin)
):
    user = crud.get_user(db, user_id)
    if not user:
        raise crud.NotFoundError("User not found")
    previous = user.role
    crud.set_user_role(db, user_id, payload.role)
    crud.create_admin_audit_log(
        db, admin.id, "user_role_updated", "user", user_id, {"from": previous.value, "to": payload.role.value}
    )
    crud.commit(db, "updating user role")
    db.refresh(user)
    logger.info(f"User {user_id} role {previous.value} -> {payload.role.value} by admin {admin.id}")
    return user
