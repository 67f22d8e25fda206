# mindful_kids/routers/reports.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas, security, models
from ..database import get_db
from ..services import report_service

router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
)


@router.post("/professional", response_model=schemas.ReportSubmitted, status_code=status.HTTP_201_CREATED)
def report_professional(
    payload: schemas.ReportCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    report = report_service.create_report(db, current_user, payload)
    return {"message": "Report submitted. Our team will review it.", "report": report}
