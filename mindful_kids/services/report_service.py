# mindful_kids/services/report_service.py
import logging
from typing import Optional, List, Dict, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..core.timeutils import utcnow
from .verification_service import get_psychologist, set_verification_status
from .workflow import ensure_transition

logger = logging.getLogger(__name__)

# Moderation outcomes that change the professional's verification
ACTION_VERIFICATION_EFFECT = {
    models.ReportAction.temporary_suspension: models.VerificationStatus.suspended,
    models.ReportAction.verification_revoked: models.VerificationStatus.rejected,
}


def create_report(db: Session, reporter: models.User, data: schemas.ReportCreate) -> models.ProfessionalReport:
    get_psychologist(db, data.psychologist_id)
    report = models.ProfessionalReport(
        reporter_id=reporter.id,
        psychologist_id=data.psychologist_id,
        reason=data.reason or models.ReportReason.other,
        details=data.details,
        status=models.ReportStatus.open,
    )
    db.add(report)
    crud.commit(db, "creating professional report")
    db.refresh(report)
    logger.info(f"Report {report.id} filed against psychologist {report.psychologist_id} ({report.reason.value})")
    return report


def get_report(db: Session, report_id: str) -> models.ProfessionalReport:
    report = db.get(models.ProfessionalReport, report_id)
    if not report:
        raise crud.NotFoundError("Report not found")
    return report


def list_reports(db: Session, status: Optional[models.ReportStatus] = None, limit: int = 50) -> List[models.ProfessionalReport]:
    query = db.query(models.ProfessionalReport)
    if status:
        query = query.filter(models.ProfessionalReport.status == status)
    return query.order_by(models.ProfessionalReport.created_at.desc()).limit(min(limit, 200)).all()


def reports_for_psychologist(db: Session, psychologist_id: str) -> List[models.ProfessionalReport]:
    return db.query(models.ProfessionalReport).filter(
        models.ProfessionalReport.psychologist_id == psychologist_id
    ).order_by(models.ProfessionalReport.created_at.desc()).all()


def to_admin_response(report: models.ProfessionalReport) -> schemas.AdminReportResponse:
    data = schemas.AdminReportResponse.model_validate(report)
    if report.psychologist is not None:
        data.psychologist_name = report.psychologist.name
        data.psychologist_verification_status = report.psychologist.verification_status
    return data


def update_report(db: Session, admin: models.User, report_id: str, patch: schemas.ReportUpdate) -> Dict[str, Any]:
    """Apply a moderation decision and record it in the admin audit log.

    Suspension and revocation actions move the psychologist's verification
    status in the same transaction.
    """
    report = get_report(db, report_id)
    changes = patch.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        return {"message": "No changes.", "report": to_admin_response(report)}

    details: Dict[str, Any] = {
        "status": changes.get("status").value if "status" in changes else None,
        "action_taken": changes.get("action_taken").value if "action_taken" in changes else None,
        "psychologist_id": report.psychologist_id,
    }
    message = "Report updated."
    try:
        if "status" in changes:
            ensure_transition("report", report.status, patch.status)
            report.status = patch.status
        if "action_taken" in changes:
            report.action_taken = patch.action_taken
            target = ACTION_VERIFICATION_EFFECT.get(patch.action_taken)
            if target is not None:
                psychologist = get_psychologist(db, report.psychologist_id)
                previous = psychologist.verification_status
                if set_verification_status(psychologist, target, utcnow()):
                    details["psychologist_status"] = {"from": previous.value, "to": target.value}
                    message = f"Report updated. Psychologist verification status set to {target.value}."

        crud.create_admin_audit_log(
            db, admin.id, "report_action_taken", "professional_report", report.id, details,
        )
        crud.commit(db, "updating professional report")
    except (crud.CRUDError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(report)
    logger.info(f"Report {report.id} updated by admin {admin.id}: {details}")
    return {"message": message, "report": to_admin_response(report)}
