# mindful_kids/routers/clinic_admin.py
import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import crud, schemas, models
from ..database import get_db
from ..security import require_clinic_access, require_clinic_admin
from ..services import directory_service, verification_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/clinic-admin",
    tags=["Clinic Admin"],
    responses={403: {"description": "No access to this clinic"}, 404: {"description": "Not found"}},
)


@router.get("/clinics", response_model=List[schemas.ClinicDetail])
def read_my_clinics(db: Session = Depends(get_db), current_user: models.User = Depends(require_clinic_admin)):
    if current_user.role == models.UserRole.admin:
        clinics = crud.get_clinics(db, is_active=None)
    else:
        clinics = crud.get_clinics_for_admin_user(db, current_user.id)
    return directory_service.clinic_views(db, clinics)


@router.get("/clinics/{clinic_id}", response_model=schemas.ClinicDetail, dependencies=[Depends(require_clinic_access)])
def read_clinic(clinic_id: str, db: Session = Depends(get_db)):
    return directory_service.clinic_detail(db, crud.get_clinic(db, clinic_id))


@router.patch("/clinics/{clinic_id}", response_model=schemas.ClinicDetail)
def update_clinic(
    clinic_id: str,
    patch: schemas.ClinicUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_clinic_access)
):
    clinic = crud.update_clinic(db, clinic_id, patch)
    logger.info(f"Clinic {clinic_id} profile updated by user {current_user.id}")
    return directory_service.clinic_detail(db, clinic)


@router.get("/clinics/{clinic_id}/therapists", response_model=List[schemas.ClinicTherapistView],
            dependencies=[Depends(require_clinic_access)])
def read_clinic_therapists(clinic_id: str, db: Session = Depends(get_db)):
    crud.get_clinic(db, clinic_id)
    return crud.clinic_therapist_views(db, clinic_id)


@router.post("/clinics/{clinic_id}/therapists", response_model=schemas.AffiliationResponse,
             status_code=status.HTTP_201_CREATED)
def add_clinic_therapist(
    clinic_id: str,
    payload: schemas.AffiliationCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_clinic_access)
):
    """Link a professional to the clinic. A previously removed link is reactivated."""
    crud.get_clinic(db, clinic_id)
    verification_service.get_psychologist(db, payload.psychologist_id)
    link = crud.add_affiliation(
        db, payload.psychologist_id, clinic_id, role_label=payload.role_label, is_primary=payload.is_primary
    )
    logger.info(f"Psychologist {payload.psychologist_id} affiliated with clinic {clinic_id} by user {current_user.id}")
    return link


@router.delete("/clinics/{clinic_id}/therapists/{psychologist_id}", response_model=schemas.AffiliationResponse)
def remove_clinic_therapist(
    clinic_id: str,
    psychologist_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_clinic_access)
):
    link = crud.remove_affiliation(db, clinic_id, psychologist_id)
    logger.info(f"Psychologist {psychologist_id} removed from clinic {clinic_id} by user {current_user.id}")
    return link
