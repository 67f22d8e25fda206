import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse

from .bootstrap import create_or_update_admin
from .config import get_settings
from .core.logging import setup_logging
from .database import create_tables
from .errors import register_exception_handlers
from .limiter import limiter
from .routers import (
    activities, admin, advice, auth, children, clinic_admin, clinic_applications, clinics, content,
    emotion_logs, health, progress, psychologists, reports, reviews, search, therapist
)
from .services.storage_service import DocumentStorage

settings = get_settings()
logger = setup_logging()

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    debug=settings.debug,
)
app.state.limiter = limiter
app.state.storage = DocumentStorage(settings.upload_dir, settings.max_upload_bytes)
register_exception_handlers(app)


@app.on_event("startup")
def on_startup():
    create_tables()
    create_or_update_admin()
    logger.info("startup_complete", environment=settings.environment, upload_dir=str(app.state.storage.root))


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(health.router, prefix="/api/v1")
app.include_router(auth.router, prefix="/api/v1")
app.include_router(children.router, prefix="/api/v1")
app.include_router(progress.router, prefix="/api/v1")
app.include_router(emotion_logs.router, prefix="/api/v1")
app.include_router(activities.router, prefix="/api/v1")
app.include_router(advice.router, prefix="/api/v1")
app.include_router(content.router, prefix="/api/v1")
app.include_router(content.admin_router, prefix="/api/v1")
app.include_router(psychologists.router, prefix="/api/v1")
app.include_router(clinics.router, prefix="/api/v1")
app.include_router(search.router, prefix="/api/v1")
app.include_router(reviews.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")
app.include_router(therapist.router, prefix="/api/v1")
app.include_router(clinic_applications.router, prefix="/api/v1")
app.include_router(clinic_applications.admin_router, prefix="/api/v1")
app.include_router(clinic_admin.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")


@app.post("/token", include_in_schema=False)
async def token_redirect():
    return RedirectResponse(url="/api/v1/auth/token", status_code=307)


if __name__ == "__main__":
    uvicorn.run("mindful_kids.main:app", host="0.0.0.0", port=settings.port, reload=settings.is_development)
