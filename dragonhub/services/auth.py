# ruff: noqa: I001
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
import uuid

from fastapi import Depends, HTTPException
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.requests import Request

from dragonhub.core.settings import settings
from dragonhub.models.user import User, UserSession
from db import get_db

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

SESSION_COOKIE = "session_id"

# Password hashing


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unrecognized hash format (e.g. seeded placeholder)
        return False


def _utcnow() -> datetime:
    # Use aware UTC to avoid deprecation, but store naive UTC to match the DB schema
    return datetime.now(timezone.utc).replace(tzinfo=None)


# User authentication


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.Email == email, User.IsActive).first()
    if user and verify_password(password, getattr(user, "HashedPassword", "")):
        return user
    return None


def create_user(db: Session, first_name: str, last_name: str, email: str, password: str):
    user = User(
        FirstName=first_name,
        LastName=last_name,
        Email=email,
        HashedPassword=hash_password(password),
        IsActive=True,
    )
    db.add(user)
    try:
        db.commit()
        db.refresh(user)
        return user
    except IntegrityError:
        db.rollback()
        return None


# Session management


def create_session(
    db: Session,
    user_id: int,
    expires_in_minutes: Optional[int] = None,
    ip_address: str = "",
    user_agent: str = "",
):
    now = _utcnow()
    ttl = expires_in_minutes if expires_in_minutes is not None else settings.SESSION_TTL_MINUTES
    session = UserSession(
        SessionID=uuid.uuid4(),
        UserID=user_id,
        CreatedAt=now,
        ExpiresAt=now + timedelta(minutes=ttl),
        IsActive=True,
        LastSeen=now,
        IPAddress=ip_address or None,
        UserAgent=(user_agent or "")[:255] or None,
    )
    db.add(session)
    db.commit()
    return session


def _session_uuid(session_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(session_id))
    except ValueError:
        return None


def get_session(db: Session, session_id: str):
    sid = _session_uuid(session_id)
    if sid is None:
        return None
    session = (
        db.query(UserSession)
        .filter(UserSession.SessionID == sid, UserSession.IsActive)
        .first()
    )
    if session is None:
        return None
    expires_at = getattr(session, "ExpiresAt", None)
    if isinstance(expires_at, datetime) and expires_at > _utcnow():
        session.LastSeen = _utcnow()
        db.commit()
        return session
    return None


def deactivate_session(db: Session, session_id: str) -> None:
    sid = _session_uuid(session_id)
    if sid is None:
        return
    session = db.query(UserSession).filter(UserSession.SessionID == sid).first()
    if session:
        session.IsActive = False
        db.commit()


# Helper to read user from request cookie


def get_user_id_from_request(request: Request, db: Session) -> Optional[int]:
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        return None
    session_obj = get_session(db=db, session_id=session_id)
    if not session_obj:
        return None
    uid: Any = getattr(session_obj, "UserID", None)
    return int(uid) if uid is not None else None


# FastAPI dependencies for auth


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Return the current authenticated User or None if not logged in/invalid.

    This uses the session cookie and validates activity/expiry.
    """
    uid = get_user_id_from_request(request, db)
    if uid is None:
        return None
    return db.query(User).filter(User.UserID == uid, User.IsActive).first()


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency that requires an authenticated user; redirects to /login if missing."""
    user = get_current_user(request, db)
    if not user:
        raise HTTPException(status_code=302, headers={"Location": "/login"})
    return user
