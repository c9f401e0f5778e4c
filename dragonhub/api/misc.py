"""Health endpoints for load balancers and uptime checks."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db import get_db
from dragonhub.core.settings import settings

router = APIRouter()


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    # Check required settings presence (don't leak values)
    missing = []
    if not settings.DATABASE_URL:
        for name in ("DB_SERVER", "DB_USER", "DB_PASSWORD"):
            if not getattr(settings, name):
                missing.append(name)
    if settings.SECRET_KEY == "CHANGE_THIS_TO_A_SECRET_KEY" or not settings.SECRET_KEY:
        missing.append("SECRET_KEY")

    db_ok = False
    db_error = None
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        db_error = str(e)

    status = "ok" if db_ok and not missing else ("degraded" if db_ok else "error")
    payload = {
        "status": status,
        "time": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "config": {
            "base_url_set": bool(settings.BASE_URL),
            "school_year": settings.CURRENT_SCHOOL_YEAR,
            "approval_threshold": settings.EVENT_PLAN_APPROVAL_THRESHOLD,
        },
        "missing": missing,
        "db": {"ok": db_ok, "error": db_error},
    }
    # Always 200; status is in the payload
    return JSONResponse(content=payload, status_code=200)


@router.get("/health.txt")
def health_text():
    return Response(content="OK", media_type="text/plain")
