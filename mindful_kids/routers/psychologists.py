# mindful_kids/routers/psychologists.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import directory_service

router = APIRouter(
    prefix="/psychologists",
    tags=["Psychologists"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[schemas.PsychologistResponse])
def read_psychologists(
    specialization: Optional[str] = None,
    search: Optional[str] = None,
    min_rating: Optional[float] = Query(None, ge=0, le=5),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """Directory of active, verified professionals."""
    return directory_service.list_psychologists(
        db, specialization=specialization, search=search, min_rating=min_rating, limit=limit, offset=offset
    )


@router.get("/{psychologist_id}", response_model=schemas.PsychologistDetail)
def read_psychologist(psychologist_id: str, db: Session = Depends(get_db)):
    return directory_service.get_public_psychologist(db, psychologist_id)
