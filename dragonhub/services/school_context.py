from typing import Optional

from sqlalchemy.orm import Session
from starlette.requests import Request

from dragonhub.models.school import School, SchoolMembership
from dragonhub.models.user import User

SCHOOL_COOKIE = "current_school_id"


def get_school_membership(
    db: Session, user_id: int, school_id: int, school_year: str
) -> Optional[SchoolMembership]:
    return (
        db.query(SchoolMembership)
        .filter(
            SchoolMembership.UserID == user_id,
            SchoolMembership.SchoolID == school_id,
            SchoolMembership.SchoolYear == school_year,
            SchoolMembership.Status == "approved",
        )
        .first()
    )


def can_use_school(db: Session, user: User, school_id: int, school_year: str) -> bool:
    school = db.query(School).filter(School.SchoolID == school_id, School.IsActive).first()
    if school is None:
        return False
    if bool(user.IsAdmin):
        return True
    return get_school_membership(db, int(user.UserID), school_id, school_year) is not None


def get_current_school_id(
    request: Request, db: Session, user: User, school_year: str
) -> Optional[int]:
    """Resolve the school the user is working in.

    The ``current_school_id`` cookie wins when the user may use that school;
    otherwise fall back to the user's first approved membership this school year.
    """
    raw = request.cookies.get(SCHOOL_COOKIE)
    if raw:
        try:
            school_id = int(raw)
        except ValueError:
            school_id = None
        if school_id is not None and can_use_school(db, user, school_id, school_year):
            return school_id

    membership = (
        db.query(SchoolMembership)
        .filter(
            SchoolMembership.UserID == user.UserID,
            SchoolMembership.SchoolYear == school_year,
            SchoolMembership.Status == "approved",
        )
        .order_by(SchoolMembership.SchoolMembershipID)
        .first()
    )
    return int(membership.SchoolID) if membership is not None else None
