# mindful_kids/routers/activities.py
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, schemas, models
from ..database import get_db

router = APIRouter(
    prefix="/activities",
    tags=["Activities"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[schemas.ActivityResponse])
def read_activities(
    active: Optional[bool] = True,
    activity_type: Optional[str] = None,
    age_group: Optional[models.AgeGroup] = None,
    db: Session = Depends(get_db)
):
    return crud.get_activities(
        db, active=active, activity_type=activity_type, age_group=age_group.value if age_group else None
    )


@router.get("/slug/{slug}", response_model=schemas.ActivityResponse)
def read_activity_by_slug(slug: str, db: Session = Depends(get_db)):
    return crud.get_activity_by_slug(db, slug)


@router.get("/{activity_id}", response_model=schemas.ActivityResponse)
def read_activity(activity_id: str, db: Session = Depends(get_db)):
    return crud.get_activity(db, activity_id)
