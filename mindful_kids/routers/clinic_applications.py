# mindful_kids/routers/clinic_applications.py
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from .. import schemas, models
from ..database import get_db
from ..limiter import limiter, PUBLIC_SUBMISSION_LIMIT
from ..security import require_admin
from ..services import clinic_application_service
from ..services.email_service import EmailService, get_email_service
from ..services.storage_service import DocumentStorage, get_storage


router = APIRouter(
    prefix="/clinic-applications",
    tags=["Clinic Applications"],
)

admin_router = APIRouter(
    prefix="/admin/clinic-applications",
    tags=["Admin Clinic Applications"],
)


@router.post("", response_model=schemas.ClinicApplicationSubmitted, status_code=status.HTTP_201_CREATED)
@limiter.limit(PUBLIC_SUBMISSION_LIMIT)
async def submit_clinic_application(
    request: Request,
    clinic_name: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    contact_email: Optional[str] = Form(None),
    contact_phone: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    document: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage)
):
    """Public, unauthenticated. Accepts one verification document (PDF or image, max 10MB)."""
    application = await clinic_application_service.submit(
        db, storage, document,
        clinic_name=clinic_name,
        country=country,
        contact_email=contact_email,
        contact_phone=contact_phone,
        description=description,
    )
    return {"message": "Application submitted.", "application": application}


# --- Admin ---

@admin_router.get("", response_model=List[schemas.ClinicApplicationResponse], dependencies=[Depends(require_admin)])
def read_clinic_applications(
    status: Optional[models.ClinicApplicationStatus] = None,
    country: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    return clinic_application_service.list_applications(db, status=status, country=country, limit=limit)


# Declared before /{application_id} so "document" is not read as an id.
@admin_router.get("/document", response_class=FileResponse)
def serve_clinic_document(
    token: Optional[str] = None,
    db: Session = Depends(get_db),
    storage: DocumentStorage = Depends(get_storage)
):
    """Serve a document via the signed link from /{id}/document. No session required."""
    path = clinic_application_service.resolve_document(db, storage, token)
    return FileResponse(path, headers={"Cache-Control": "private, no-store"})


@admin_router.get("/{application_id}", response_model=schemas.ClinicApplicationResponse,
                  dependencies=[Depends(require_admin)])
def read_clinic_application(application_id: str, db: Session = Depends(get_db)):
    return clinic_application_service.get_application(db, application_id)


@admin_router.get("/{application_id}/document", response_model=schemas.DocumentLinkResponse,
                  dependencies=[Depends(require_admin)])
def get_clinic_document_link(application_id: str, db: Session = Depends(get_db)):
    return clinic_application_service.document_link(db, application_id)


@admin_router.patch("/{application_id}", response_model=schemas.ClinicApplicationReviewResult)
async def review_clinic_application(
    application_id: str,
    decision: schemas.ApplicationReview,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    admin: models.User = Depends(require_admin)
):
    return await clinic_application_service.review(db, admin, application_id, decision, email_service)
