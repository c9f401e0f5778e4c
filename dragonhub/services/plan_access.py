from __future__ import annotations

from typing import Optional, Protocol

from sqlalchemy.orm import Session

from dragonhub.models.event_plan import EventPlan, EventPlanMember
from dragonhub.models.school import BOARD_ROLES
from dragonhub.models.user import User
from dragonhub.services.school_context import get_school_membership


class PlanAccess(Protocol):
    """Authorization collaborator consulted by the event plan workflow."""

    def is_board_member(self, user_id: int) -> bool: ...

    def get_plan_role(self, user_id: int, plan_id: int) -> Optional[str]:
        """Return "lead", "member" or None when the user has no standing on the plan."""
        ...

    def user_exists(self, user_id: int) -> bool: ...

    def is_school_member(self, user_id: int) -> bool:
        """True when the user belongs to the school the workflow is scoped to."""
        ...


class SqlPlanAccess:
    """Board membership and plan roles read from the database for one school."""

    def __init__(self, db: Session, school_id: Optional[int], school_year: str):
        self.db = db
        self.school_id = school_id
        self.school_year = school_year

    def is_board_member(self, user_id: int) -> bool:
        user = _active_user(self.db, user_id)
        if user is None:
            return False
        # Site admins act as board on every school
        if bool(user.IsAdmin):
            return True
        if self.school_id is None:
            return False
        membership = get_school_membership(self.db, user_id, self.school_id, self.school_year)
        return membership is not None and membership.Role in BOARD_ROLES

    def user_exists(self, user_id: int) -> bool:
        return _active_user(self.db, user_id) is not None

    def is_school_member(self, user_id: int) -> bool:
        user = _active_user(self.db, user_id)
        if user is None:
            return False
        if bool(user.IsAdmin):
            return True
        if self.school_id is None:
            return False
        membership = get_school_membership(self.db, user_id, self.school_id, self.school_year)
        return membership is not None

    def get_plan_role(self, user_id: int, plan_id: int) -> Optional[str]:
        plan = self.db.query(EventPlan).filter(EventPlan.EventPlanID == plan_id).first()
        if plan is None:
            return None
        # The creator keeps lead standing even without a member row
        if plan.CreatedBy == user_id:
            return "lead"
        member = (
            self.db.query(EventPlanMember)
            .filter(EventPlanMember.EventPlanID == plan_id, EventPlanMember.UserID == user_id)
            .first()
        )
        return member.Role if member is not None else None


def _active_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.UserID == user_id, User.IsActive).first()
