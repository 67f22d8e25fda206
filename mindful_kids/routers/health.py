# mindful_kids/routers/health.py
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..core.timeutils import utcnow
from ..database import get_db

router = APIRouter(
    prefix="/health",
    tags=["Health Checks"],
)


@router.get("")
def health_check():
    return {"status": "ok", "timestamp": utcnow().isoformat()}


@router.get("/db")
def database_health(db: Session = Depends(get_db)):
    """Round trip to the database. Errors surface through the 500 handler."""
    db.execute(text("SELECT 1"))
    return {"status": "ok", "database": "reachable", "timestamp": utcnow().isoformat()}
