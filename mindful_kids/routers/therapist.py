# mindful_kids/routers/therapist.py
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from .. import crud, schemas, models
from ..config import get_settings
from ..database import get_db
from ..security import require_admin, require_therapist
from ..services import directory_service, report_service, therapist_application_service, verification_service
from ..services.storage_service import CREDENTIALS_DIR, DocumentStorage, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/therapist",
    tags=["Therapist"],
    responses={403: {"description": "Therapist role required"}},
)


# --- Application ---

@router.get("/application", response_model=Optional[schemas.TherapistApplicationResponse])
def read_my_application(db: Session = Depends(get_db), current_user: models.User = Depends(require_therapist)):
    """The caller's application, or null when none has been started."""
    application = therapist_application_service.get_for_user(db, current_user.id)
    if application is None:
        return None
    return therapist_application_service.to_response(application)


@router.put("/application", response_model=schemas.TherapistApplicationResponse)
def save_my_application(
    payload: schemas.TherapistApplicationUpsert,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_therapist)
):
    application = therapist_application_service.upsert_draft(db, current_user, payload)
    return therapist_application_service.to_response(application)


@router.post("/application/submit", response_model=schemas.TherapistApplicationResponse)
def submit_my_application(db: Session = Depends(get_db), current_user: models.User = Depends(require_therapist)):
    application = therapist_application_service.submit(db, current_user)
    return therapist_application_service.to_response(application)


# --- Profile & clinics ---

@router.get("/profile", response_model=schemas.TherapistProfileResponse)
def read_my_profile(db: Session = Depends(get_db), current_user: models.User = Depends(require_therapist)):
    psychologist = verification_service.get_psychologist_for_user(db, current_user.id)
    if psychologist is None:
        return {"profile": None, "message": verification_service.NO_PROFILE}
    return {"profile": directory_service.psychologist_detail(db, psychologist)}


@router.get("/clinics", response_model=List[schemas.TherapistClinicView])
def read_my_clinics(db: Session = Depends(get_db), current_user: models.User = Depends(require_therapist)):
    """Every affiliation, removed ones included, so the therapist can see their history."""
    psychologist = verification_service.get_psychologist_for_user(db, current_user.id)
    if psychologist is None:
        return []
    return [
        schemas.TherapistClinicView(
            clinic_id=clinic.id,
            clinic_name=clinic.name,
            clinic_slug=clinic.slug,
            role_label=link.role_label,
            is_primary=link.is_primary,
            status=link.status,
        )
        for link, clinic in crud.get_affiliations_for_psychologist(db, psychologist.id, include_removed=True)
    ]


# --- Credentials ---

@router.get("/credentials", response_model=List[schemas.CredentialResponse])
def read_my_credentials(db: Session = Depends(get_db), current_user: models.User = Depends(require_therapist)):
    psychologist = verification_service.get_psychologist_for_user(db, current_user.id)
    if psychologist is None:
        return []
    return verification_service.list_credentials(db, psychologist.id)


@router.post("/credentials", response_model=schemas.CredentialSubmissionResult, status_code=status.HTTP_201_CREATED)
def submit_my_credential(
    submission: schemas.CredentialSubmission,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_therapist)
):
    return verification_service.submit_credential(db, current_user, submission)


@router.post("/credential-document", response_model=schemas.DocumentUploadResponse,
             status_code=status.HTTP_201_CREATED)
async def upload_credential_document(
    document: Optional[UploadFile] = File(None),
    storage: DocumentStorage = Depends(get_storage),
    current_user: models.User = Depends(require_therapist)
):
    """Store a credential document and return the URL to put on a credential submission."""
    if document is None or not document.filename:
        raise crud.CRUDError('No file uploaded. Send a single file in field "document".')
    filename = await storage.save(document, CREDENTIALS_DIR)
    logger.info(f"Therapist {current_user.id} uploaded credential document {filename}")
    url = f"{get_settings().public_base_url}/api/v1/therapist/credential-document/{filename}"
    return {"url": url}


@router.get("/credential-document/{filename}", response_class=FileResponse,
            dependencies=[Depends(require_admin)])
def read_credential_document(filename: str, storage: DocumentStorage = Depends(get_storage)):
    path = storage.resolve(CREDENTIALS_DIR, filename, "Invalid filename")
    return FileResponse(path, headers={"Cache-Control": "private, no-store"})


# --- Reports ---

@router.get("/reports", response_model=List[schemas.ReportResponse])
def read_my_reports(db: Session = Depends(get_db), current_user: models.User = Depends(require_therapist)):
    psychologist = verification_service.get_psychologist_for_user(db, current_user.id)
    if psychologist is None:
        return []
    reports = report_service.reports_for_psychologist(db, psychologist.id)
    crud.create_therapist_audit_log(
        db, current_user.id, "therapist_viewed_reports", "psychologist", psychologist.id,
        {"count": len(reports)},
    )
    crud.commit(db, "logging report view")
    return reports
