# mindful_kids/routers/children.py
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from .. import crud, schemas, security, models
from ..database import get_db

router = APIRouter(
    prefix="/children",
    tags=["Children"],
    dependencies=[Depends(security.get_current_user)],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=List[schemas.ChildResponse])
def read_children(db: Session = Depends(get_db), current_user: models.User = Depends(security.get_current_user)):
    return crud.get_children(db, current_user.id)


@router.get("/{child_id}", response_model=schemas.ChildResponse)
def read_child(child_id: str, db: Session = Depends(get_db), current_user: models.User = Depends(security.get_current_user)):
    return crud.get_child(db, child_id, current_user.id)


@router.post("", response_model=schemas.ChildResponse, status_code=status.HTTP_201_CREATED)
def create_child(
    child: schemas.ChildCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    return crud.create_child(db, current_user.id, child)


@router.patch("/{child_id}", response_model=schemas.ChildResponse)
def update_child(
    child_id: str,
    patch: schemas.ChildUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    return crud.update_child(db, child_id, current_user.id, patch)


@router.delete("/{child_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_child(child_id: str, db: Session = Depends(get_db), current_user: models.User = Depends(security.get_current_user)):
    crud.delete_child(db, child_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
