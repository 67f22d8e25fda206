# mindful_kids/routers/progress.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, schemas, security, models
from ..database import get_db

router = APIRouter(
    prefix="/progress",
    tags=["Progress"],
    dependencies=[Depends(security.get_current_user)],
)


@router.get("/children/{child_id}", response_model=List[schemas.ProgressResponse])
def read_progress(child_id: str, db: Session = Depends(get_db), current_user: models.User = Depends(security.get_current_user)):
    crud.get_child(db, child_id, current_user.id)
    return crud.get_progress_for_child(db, child_id)


@router.get("/children/{child_id}/streak", response_model=schemas.StreakResponse)
def read_streak(child_id: str, db: Session = Depends(get_db), current_user: models.User = Depends(security.get_current_user)):
    crud.get_child(db, child_id, current_user.id)
    return {"child_id": child_id, "current_streak": crud.get_streak(db, child_id)}


@router.get("/children/{child_id}/summary", response_model=schemas.ProgressSummary)
def read_summary(child_id: str, db: Session = Depends(get_db), current_user: models.User = Depends(security.get_current_user)):
    """Stars, current streak and the ten most recent completions."""
    crud.get_child(db, child_id, current_user.id)
    return crud.get_progress_summary(db, child_id)


@router.put("/children/{child_id}/activities/{activity_id}", response_model=schemas.ProgressResponse)
def upsert_progress(
    child_id: str,
    activity_id: str,
    payload: schemas.ProgressUpsert,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    crud.get_child(db, child_id, current_user.id)
    return crud.upsert_progress(db, child_id, activity_id, payload)
