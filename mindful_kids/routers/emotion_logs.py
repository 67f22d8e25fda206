# mindful_kids/routers/emotion_logs.py
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import crud, schemas, security, models
from ..database import get_db

router = APIRouter(
    prefix="/emotion-logs",
    tags=["Emotion Logs"],
    dependencies=[Depends(security.get_current_user)],
)


@router.post("", response_model=schemas.EmotionLogResponse, status_code=status.HTTP_201_CREATED)
def create_emotion_log(
    payload: schemas.EmotionLogCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    crud.get_child(db, payload.child_id, current_user.id)
    return crud.create_emotion_log(db, payload)


@router.get("/children/{child_id}", response_model=List[schemas.EmotionLogResponse])
def read_emotion_logs(
    child_id: str,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    crud.get_child(db, child_id, current_user.id)
    return crud.get_emotion_logs(db, child_id, limit=limit)
