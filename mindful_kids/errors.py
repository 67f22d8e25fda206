# mindful_kids/errors.py
import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError

from .config import get_settings
from .crud import CRUDError

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"


def _field_errors(exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        # Drop the "body"/"query" prefix so clients see the field name
        location = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form")]
        errors.append({
            "field": ".".join(location) or None,
            "message": err.get("msg", "Invalid value"),
        })
    return errors


def classify_integrity_error(exc: IntegrityError):
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None)
    text = str(orig or exc).lower()
    if code == UNIQUE_VIOLATION or "unique" in text or "duplicate" in text:
        return status.HTTP_409_CONFLICT, "Resource already exists (duplicate)"
    if code == FOREIGN_KEY_VIOLATION or "foreign key" in text:
        return status.HTTP_400_BAD_REQUEST, "Invalid reference (foreign key)"
    return status.HTTP_400_BAD_REQUEST, "Database constraint violated"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Validation failed", "errors": _field_errors(exc)},
        )

    @app.exception_handler(CRUDError)
    async def domain_exception_handler(request: Request, exc: CRUDError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        code, message = classify_integrity_error(exc)
        logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
        return JSONResponse(status_code=code, content={"detail": message})

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded for {request.client.host if request.client else 'unknown'} on {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": f"Too many requests. Limit: {exc.detail}. Try again later."},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions globally."""
        logger.exception(f"Unhandled exception: {exc}")
        content = {"detail": "Internal server error"}
        if not get_settings().is_production:
            content["trace"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)
