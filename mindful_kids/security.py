import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from jose import ExpiredSignatureError, JWTError, jwt
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from passlib.context import CryptContext

from .config import get_settings
from .database import get_db
from . import models

security_logger = logging.getLogger("security")

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto",
    argon2__rounds=4,
    argon2__memory_cost=65536,
    argon2__parallelism=1,
)

ACCESS_TOKEN_TYPE = "access"
DOCUMENT_TOKEN_TYPE = "clinic_document"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/token", auto_error=False)


class TokenExpired(Exception):
    pass


class TokenInvalid(Exception):
    pass


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def token_lifetime(role: models.UserRole) -> timedelta:
    settings = get_settings()
    if role == models.UserRole.admin:
        return timedelta(minutes=settings.jwt_admin_expires_minutes)
    return timedelta(minutes=settings.jwt_expires_minutes)


def _encode(payload: Dict[str, Any]) -> str:
    settings = get_settings()
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, token_type: str) -> Dict[str, Any]:
    """Decode and type-check a token. Raises TokenExpired or TokenInvalid."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError:
        raise TokenExpired()
    except JWTError:
        raise TokenInvalid()

    if payload.get("type") != token_type or not payload.get("sub"):
        raise TokenInvalid()
    return payload


def create_access_token(user: models.User, expires_delta: Optional[timedelta] = None) -> str:
    """Session token carrying the user id and role."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta if expires_delta is not None else token_lifetime(user.role))
    return _encode({
        "sub": user.id,
        "role": user.role.value,
        "type": ACCESS_TOKEN_TYPE,
        "iat": now,
        "exp": expire,
        "jti": secrets.token_urlsafe(16),
    })


def create_document_token(application_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Short-lived capability for one clinic application document.
    Bound to the application id only; independent of the caller's session."""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(seconds=get_settings().document_link_expires_seconds)
    return _encode({
        "sub": application_id,
        "type": DOCUMENT_TOKEN_TYPE,
        "iat": now,
        "exp": now + expires_delta,
    })


# Dependencies for FastAPI
async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> models.User:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _resolve_user(request, token, db)


def _resolve_user(request: Request, token: str, db: Session) -> models.User:
    try:
        payload = decode_token(token, ACCESS_TOKEN_TYPE)
    except TokenExpired:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except TokenInvalid:
        security_logger.warning(f"Rejected invalid token on {request.url.path}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.get(models.User, payload["sub"])
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_role(*allowed_roles: str):
    """Dependency factory for role-based access control"""
    def role_dependency(current_user: models.User = Depends(get_current_user)) -> models.User:
        if current_user.role.value not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {', '.join(allowed_roles)}"
            )
        return current_user

    return role_dependency


# Specific role dependencies
require_admin = require_role("admin")
require_therapist = require_role("therapist")
require_clinic_admin = require_role("clinic_admin", "admin")


def require_clinic_access(
    clinic_id: str,
    current_user: models.User = Depends(require_clinic_admin),
    db: Session = Depends(get_db)
) -> models.User:
    """Admins manage every clinic; clinic admins only the clinics they are linked to."""
    if current_user.role == models.UserRole.admin:
        return current_user
    link = db.query(models.ClinicAdmin).filter(
        models.ClinicAdmin.user_id == current_user.id,
        models.ClinicAdmin.clinic_id == clinic_id,
    ).first()
    if not link:
        security_logger.warning(f"User {current_user.id} denied access to clinic {clinic_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this clinic"
        )
    return current_user
