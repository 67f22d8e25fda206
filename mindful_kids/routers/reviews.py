# mindful_kids/routers/reviews.py
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import crud, schemas, security, models
from ..database import get_db

router = APIRouter(
    prefix="/reviews",
    tags=["Reviews"],
)


@router.post("", response_model=schemas.ReviewResponse)
def save_review(
    review: schemas.ReviewCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """One review per user and professional; posting again replaces it."""
    return crud.upsert_review(db, current_user.id, review)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(
    review_id: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    crud.delete_review(db, review_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
