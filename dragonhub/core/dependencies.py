"""Dependencies for FastAPI routes."""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from db import get_db
from dragonhub.core.settings import settings
from dragonhub.models.user import User
from dragonhub.services.auth import require_user
from dragonhub.services.errors import ValidationError
from dragonhub.services.event_plan_store import SqlEventPlanStore
from dragonhub.services.event_plan_workflow import EventPlanWorkflow
from dragonhub.services.plan_access import SqlPlanAccess
from dragonhub.services.revalidate import ResourceSignal
from dragonhub.services.school_context import get_current_school_id


def get_event_plan_workflow(
    request: Request,
    db: Session = Depends(get_db),
    user: User = Depends(require_user),
) -> EventPlanWorkflow:
    """Build a workflow scoped to the caller's current school for this request."""
    school_year = settings.CURRENT_SCHOOL_YEAR
    school_id = get_current_school_id(request, db, user, school_year)
    # A store without a school sees every school; never hand that to a request
    if school_id is None:
        raise ValidationError("No school selected")
    return EventPlanWorkflow(
        store=SqlEventPlanStore(db, school_id),
        access=SqlPlanAccess(db, school_id, school_year),
        signal=ResourceSignal(),
        approval_threshold=settings.EVENT_PLAN_APPROVAL_THRESHOLD,
        allow_resubmit=settings.EVENT_PLAN_ALLOW_RESUBMIT,
        default_school_year=school_year,
    )
