# mindful_kids/routers/auth.py
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from .. import crud, schemas, security, models
from ..database import get_db
from ..limiter import limiter, PUBLIC_SUBMISSION_LIMIT
from ..services import invite_service

logger = logging.getLogger(__name__)


router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

SELF_SERVICE_ROLES = {
    "therapist": models.UserRole.therapist,
    "clinic_admin": models.UserRole.clinic_admin,
}


def _auth_payload(user: models.User, message: str) -> dict:
    return {
        "message": message,
        "user": user,
        "token": security.create_access_token(user),
        "expires_in": int(security.token_lifetime(user.role).total_seconds()),
    }


def _authenticate_or_401(db: Session, email: str, password: str) -> models.User:
    user = crud.authenticate_user(db, email, password)
    if not user:
        logger.warning(f"Failed login attempt for email: {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    logger.info(f"User '{user.email}' successfully authenticated.")
    return user


@router.post("/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: schemas.RegisterRequest, db: Session = Depends(get_db)):
    """Self-service sign up. Admin can never be requested here."""
    role = SELF_SERVICE_ROLES.get(payload.role, models.UserRole.parent)
    user = crud.create_user(db, email=payload.email, password=payload.password, name=payload.name, role=role)
    logger.info(f"Registered user {user.id} as {role.value}")
    return _auth_payload(user, "Registration successful")


@router.post("/login", response_model=schemas.AuthResponse)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = _authenticate_or_401(db, payload.email, payload.password)
    return _auth_payload(user, "Login successful")


@router.post("/token", response_model=schemas.TokenResponse)
def login_for_access_token(db: Session = Depends(get_db), form_data: OAuth2PasswordRequestForm = Depends()):
    user = _authenticate_or_401(db, form_data.username, form_data.password)
    return {
        "access_token": security.create_access_token(user),
        "token_type": "bearer",
        "expires_in": int(security.token_lifetime(user.role).total_seconds()),
        "user": user,
    }


@router.get("/me", response_model=schemas.UserPublic)
async def read_users_me(current_user: models.User = Depends(security.get_current_user)):
    """
    Get the current logged in user's details.
    """
    return current_user


@router.post("/me/legal-acceptance", response_model=schemas.LegalAcceptanceResponse, status_code=status.HTTP_201_CREATED)
def accept_legal_document(
    payload: schemas.LegalAcceptanceCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    return crud.record_legal_acceptance(db, current_user.id, payload.document_type, payload.version)


@router.get("/me/legal-acceptances", response_model=Dict[str, schemas.LegalAcceptanceResponse])
def read_legal_acceptances(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """Latest acceptance per document type, keyed by type."""
    return crud.get_latest_legal_acceptances(db, current_user.id)


@router.post("/set-password-from-invite", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(PUBLIC_SUBMISSION_LIMIT)
def set_password_from_invite(
    request: Request,
    payload: schemas.SetPasswordFromInviteRequest,
    db: Session = Depends(get_db)
):
    """Clinic contact turns an approval invite into a clinic admin account."""
    user, _ = invite_service.accept_invite(db, payload.token, payload.password)
    return _auth_payload(user, "Password set. You can now sign in.")
