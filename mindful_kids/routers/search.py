# mindful_kids/routers/search.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import directory_service

router = APIRouter(
    prefix="/search",
    tags=["Search"],
)


@router.get("/therapists", response_model=List[schemas.TherapistSearchResult])
def search_therapists(
    country: Optional[str] = None,
    language: Optional[str] = None,
    specialty: Optional[str] = None,
    clinic_id: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Country matches the issuing country of the professional's verified credential."""
    return directory_service.search_therapists(
        db, country=country, language=language, specialty=specialty, clinic_id=clinic_id,
        limit=limit, offset=offset,
    )


@router.get("/clinics", response_model=List[schemas.ClinicSearchResult])
def search_clinics(
    country: Optional[str] = None,
    verified_only: bool = True,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    return directory_service.search_clinics(db, country=country, verified_only=verified_only, limit=limit, offset=offset)
