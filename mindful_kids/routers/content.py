# mindful_kids/routers/content.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from .. import crud, schemas, models
from ..database import get_db
from ..security import require_admin

router = APIRouter(
    prefix="/content",
    tags=["Content"],
)

admin_router = APIRouter(
    prefix="/admin/content",
    tags=["Admin Content"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=List[schemas.ContentItemResponse])
def read_published_content(
    type: Optional[models.ContentType] = None,
    age_range: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db)
):
    return crud.get_published_content(db, content_type=type, age_range=age_range, limit=limit)


@router.get("/{item_id}", response_model=schemas.ContentItemResponse)
def read_published_item(item_id: str, db: Session = Depends(get_db)):
    return crud.get_content_item(db, item_id)


# --- Admin ---

@admin_router.get("", response_model=List[schemas.ContentItemResponse])
def read_all_content(
    type: Optional[models.ContentType] = None,
    is_published: Optional[bool] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    return crud.get_all_content(db, content_type=type, is_published=is_published, limit=limit)


@admin_router.get("/{item_id}", response_model=schemas.ContentItemResponse)
def read_content_item(item_id: str, db: Session = Depends(get_db)):
    return crud.get_content_item(db, item_id, published_only=False)


@admin_router.post("", response_model=schemas.ContentItemResponse, status_code=status.HTTP_201_CREATED)
def create_content_item(item: schemas.ContentItemCreate, db: Session = Depends(get_db)):
    return crud.create_content_item(db, item)


@admin_router.patch("/{item_id}", response_model=schemas.ContentItemResponse)
def update_content_item(item_id: str, patch: schemas.ContentItemUpdate, db: Session = Depends(get_db)):
    """Publishing stamps published_at once; unpublishing clears it."""
    return crud.update_content_item(db, item_id, patch)


@admin_router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_content_item(item_id: str, db: Session = Depends(get_db)):
    crud.delete_content_item(db, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
