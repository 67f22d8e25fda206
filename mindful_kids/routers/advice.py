# mindful_kids/routers/advice.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..database import get_db

router = APIRouter(
    prefix="/advice",
    tags=["Advice"],
)


@router.get("", response_model=List[schemas.AdviceResponse])
def read_advice(
    category: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    daily_only: bool = False,
    db: Session = Depends(get_db)
):
    return crud.get_advice_list(db, category=category, limit=limit, daily_only=daily_only)


@router.get("/daily", response_model=schemas.AdviceResponse)
def read_daily_advice(db: Session = Depends(get_db)):
    return crud.get_daily_advice(db)


@router.get("/{advice_id}", response_model=schemas.AdviceResponse)
def read_advice_item(advice_id: str, db: Session = Depends(get_db)):
    return crud.get_advice(db, advice_id)
