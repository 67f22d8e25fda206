# mindful_kids/routers/clinics.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..database import get_db
from ..services import directory_service

router = APIRouter(
    prefix="/clinics",
    tags=["Clinics"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[schemas.ClinicDetail])
def read_clinics(
    country: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    clinics = crud.get_clinics(db, is_active=True, country=country, search=search, limit=limit)
    return directory_service.clinic_views(db, clinics, visible_only=True)


@router.get("/{clinic_id}", response_model=schemas.ClinicDetail)
def read_clinic(clinic_id: str, db: Session = Depends(get_db)):
    clinic = crud.get_clinic(db, clinic_id, active_only=True)
    return directory_service.clinic_detail(db, clinic, visible_only=True)


@router.get("/{clinic_id}/therapists", response_model=List[schemas.ClinicTherapistView])
def read_clinic_therapists(clinic_id: str, db: Session = Depends(get_db)):
    """Only verified professionals with an active affiliation are listed."""
    crud.get_clinic(db, clinic_id, active_only=True)
    return crud.clinic_therapist_views(db, clinic_id, visible_only=True)
