"""
Liveness for scanners and dashboards: database reachability, how many areas
have a live count, and whether identity tokens use a configured secret.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from doorcount.config import settings
from doorcount.database import get_db
from doorcount.models.occupancy import OccupancySnapshot
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "database": "unknown",
        "areas_tracked": None,
        "identity_salt": "configured" if settings.ID_HASH_SALT else "fallback",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
        result["areas_tracked"] = db.query(func.count(OccupancySnapshot.id)).scalar()
    except SQLAlchemyError as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result
