import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Form, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from db import get_db
from dragonhub.core.settings import settings
from dragonhub.models.school import SchoolMembership
from dragonhub.services import auth
from dragonhub.services.plan_access import SqlPlanAccess
from dragonhub.services.school_context import (
    SCHOOL_COOKIE,
    can_use_school,
    get_current_school_id,
)

router = APIRouter()
audit = logging.getLogger("audit")


@router.post("/auth/login")
async def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    client = request.client.host if request.client else None
    user = auth.authenticate_user(db, email.strip().lower(), password)
    if not user:
        audit.info("auth.login_failed", extra={"email": email.strip().lower(), "client": client})
        raise HTTPException(status_code=401, detail="Invalid email or password")

    user.LastLogin = datetime.now(timezone.utc).replace(tzinfo=None)
    session = auth.create_session(
        db,
        user_id=int(user.UserID),
        ip_address=client or "",
        user_agent=request.headers.get("user-agent", ""),
    )
    audit.info(
        "auth.login",
        extra={
            "user_id": int(user.UserID),
            "client": client,
            "request_id": getattr(request.state, "request_id", None),
        },
    )
    response = JSONResponse({"ok": True, "user_id": int(user.UserID)})
    response.set_cookie(
        key=auth.SESSION_COOKIE,
        value=str(session.SessionID),
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.SESSION_TTL_MINUTES * 60,
        path="/",
    )
    return response


@router.post("/auth/logout")
async def logout(request: Request, db: Session = Depends(get_db)):
    user_id = auth.get_user_id_from_request(request, db)
    sid = request.cookies.get(auth.SESSION_COOKIE)
    if sid:
        auth.deactivate_session(db, sid)
    audit.info(
        "auth.logout",
        extra={
            "user_id": user_id,
            "client": request.client.host if request.client else None,
            "request_id": getattr(request.state, "request_id", None),
        },
    )
    response = JSONResponse({"ok": True})
    response.delete_cookie(key=auth.SESSION_COOKIE, path="/")
    return response


@router.get("/auth/me")
async def me(
    request: Request,
    db: Session = Depends(get_db),
    user=Depends(auth.require_user),
):
    school_year = settings.CURRENT_SCHOOL_YEAR
    school_id = get_current_school_id(request, db, user, school_year)
    memberships = (
        db.query(SchoolMembership)
        .filter(
            SchoolMembership.UserID == user.UserID,
            SchoolMembership.SchoolYear == school_year,
            SchoolMembership.Status == "approved",
        )
        .all()
    )
    access = SqlPlanAccess(db, school_id, school_year)
    return {
        "ok": True,
        "user_id": int(user.UserID),
        "email": user.Email,
        "name": f"{user.FirstName} {user.LastName}".strip(),
        "school_id": school_id,
        "school_year": school_year,
        "is_board_member": access.is_board_member(int(user.UserID)),
        "schools": [{"school_id": m.SchoolID, "role": m.Role} for m in memberships],
    }


@router.post("/schools/{school_id}/select")
async def select_school(
    school_id: int,
    db: Session = Depends(get_db),
    user=Depends(auth.require_user),
):
    if not can_use_school(db, user, school_id, settings.CURRENT_SCHOOL_YEAR):
        raise HTTPException(status_code=403, detail="Not a member of this school")
    response = JSONResponse({"ok": True, "school_id": school_id})
    response.set_cookie(
        key=SCHOOL_COOKIE,
        value=str(school_id),
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=60 * 60 * 24 * 365,
        path="/",
    )
    return response
