from datetime import datetime

from dragonhub.jobs.complete_elapsed_plans_job import run_complete_elapsed_plans
from dragonhub.models.event_plan import EventPlan


def _plan(db, school, user, title, status, event_date):
    plan = EventPlan(
        SchoolID=school.SchoolID,
        Title=title,
        SchoolYear="2026-2027",
        Status=status,
        CreatedBy=user.UserID,
        EventDate=event_date,
    )
    db.add(plan)
    db.commit()
    return plan


def test_completes_elapsed_plans_across_schools(db_session, make_user, school, other_school):
    user = make_user()
    a = _plan(db_session, school, user, "Bake sale", "approved", datetime(2026, 10, 1))
    b = _plan(db_session, other_school, user, "Movie night", "approved", datetime(2026, 10, 10))
    later = _plan(db_session, school, user, "Winter gala", "approved", datetime(2026, 12, 5))
    pending = _plan(db_session, school, user, "Fun run", "pending_approval", datetime(2026, 9, 1))

    done = run_complete_elapsed_plans(db_session, now=datetime(2026, 10, 19))

    assert sorted(done) == sorted([a.EventPlanID, b.EventPlanID])
    db_session.expire_all()
    assert db_session.get(EventPlan, a.EventPlanID).Status == "completed"
    assert db_session.get(EventPlan, b.EventPlanID).Status == "completed"
    assert db_session.get(EventPlan, later.EventPlanID).Status == "approved"
    assert db_session.get(EventPlan, pending.EventPlanID).Status == "pending_approval"


def test_nothing_to_complete(db_session):
    assert run_complete_elapsed_plans(db_session, now=datetime(2026, 10, 19)) == []
