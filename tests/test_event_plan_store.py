from datetime import datetime

import pytest

from dragonhub.models.event_plan import EventPlan, EventPlanMember, EventPlanTask
from dragonhub.services.errors import ValidationError
from dragonhub.services.event_plan_store import SqlEventPlanStore
from dragonhub.services.event_plan_workflow import EventPlanWorkflow
from dragonhub.services.plan_access import SqlPlanAccess


def _plan(db, school, user, title="Spring Carnival", status="draft", **kw):
    plan = EventPlan(
        SchoolID=school.SchoolID,
        Title=title,
        SchoolYear="2026-2027",
        Status=status,
        CreatedBy=user.UserID,
        **kw,
    )
    db.add(plan)
    db.commit()
    return plan


def test_reads_are_scoped_to_school(db_session, make_user, school, other_school):
    user = make_user()
    mine = _plan(db_session, school, user, title="Ours")
    theirs = _plan(db_session, other_school, user, title="Theirs")

    store = SqlEventPlanStore(db_session, school.SchoolID)
    assert store.get_plan(mine.EventPlanID) is not None
    assert store.get_plan(theirs.EventPlanID) is None
    assert [p.Title for p in store.list_plans()] == ["Ours"]

    unscoped = SqlEventPlanStore(db_session, None)
    assert {p.Title for p in unscoped.list_plans()} == {"Ours", "Theirs"}


def test_task_lookup_respects_school(db_session, make_user, school, other_school):
    user = make_user()
    theirs = _plan(db_session, other_school, user)
    task = EventPlanTask(EventPlanID=theirs.EventPlanID, Title="Secret", SortOrder=0)
    db_session.add(task)
    db_session.commit()

    assert SqlEventPlanStore(db_session, school.SchoolID).get_task(task.EventPlanTaskID) is None
    assert SqlEventPlanStore(db_session, other_school.SchoolID).get_task(task.EventPlanTaskID)


def test_upsert_vote_keeps_one_row_per_member(db_session, make_user, school):
    user = make_user()
    board = make_user(first="Bea")
    plan = _plan(db_session, school, user, status="pending_approval")
    store = SqlEventPlanStore(db_session, school.SchoolID)

    store.upsert_vote(plan.EventPlanID, board.UserID, "approve")
    store.upsert_vote(plan.EventPlanID, board.UserID, "reject", "changed my mind")
    store.commit()

    votes = store.list_votes_for_plan(plan.EventPlanID)
    assert len(votes) == 1
    assert votes[0].Vote == "reject"
    assert votes[0].Comment == "changed my mind"
    assert store.count_votes(plan.EventPlanID, "approve") == 0
    assert store.count_votes(plan.EventPlanID, "reject") == 1

    store.clear_votes(plan.EventPlanID)
    store.commit()
    assert store.list_votes_for_plan(plan.EventPlanID) == []


def test_max_task_order_and_listing(db_session, make_user, school):
    user = make_user()
    plan = _plan(db_session, school, user)
    store = SqlEventPlanStore(db_session, school.SchoolID)
    assert store.max_task_order(plan.EventPlanID) == -1

    for order, title in ((2, "c"), (0, "a"), (1, "b")):
        store.add_task(EventPlanTask(EventPlanID=plan.EventPlanID, Title=title, SortOrder=order))
    store.commit()
    assert store.max_task_order(plan.EventPlanID) == 2
    assert [t.Title for t in store.list_tasks(plan.EventPlanID)] == ["a", "b", "c"]


def test_elapsed_plans_only_approved_and_past(db_session, make_user, school):
    user = make_user()
    _plan(db_session, school, user, title="old", status="approved", EventDate=datetime(2026, 9, 1))
    _plan(db_session, school, user, title="new", status="approved", EventDate=datetime(2027, 1, 1))
    _plan(db_session, school, user, title="draft", status="draft", EventDate=datetime(2026, 9, 1))
    _plan(db_session, school, user, title="undated", status="approved")

    store = SqlEventPlanStore(db_session, school.SchoolID)
    elapsed = store.list_elapsed_plans(datetime(2026, 10, 19))
    assert [p.Title for p in elapsed] == ["old"]


def test_count_leads(db_session, make_user, school):
    lead, helper = make_user(), make_user()
    plan = _plan(db_session, school, lead)
    store = SqlEventPlanStore(db_session, school.SchoolID)
    store.add_member(EventPlanMember(EventPlanID=plan.EventPlanID, UserID=lead.UserID, Role="lead"))
    store.add_member(
        EventPlanMember(EventPlanID=plan.EventPlanID, UserID=helper.UserID, Role="member")
    )
    store.commit()
    assert store.count_leads(plan.EventPlanID) == 1
    assert len(store.list_members(plan.EventPlanID)) == 2


def test_plan_access_board_and_roles(db_session, make_user, enroll, school, other_school):
    creator = make_user()
    board = make_user(first="Bea")
    admin = make_user(first="Ada", is_admin=True)
    helper = make_user(first="Hal")
    enroll(board, school, role="pta_board")
    enroll(helper, school)
    enroll(creator, other_school, role="admin")

    plan = _plan(db_session, school, creator)
    db_session.add(
        EventPlanMember(EventPlanID=plan.EventPlanID, UserID=helper.UserID, Role="member")
    )
    db_session.commit()

    access = SqlPlanAccess(db_session, school.SchoolID, "2026-2027")
    assert access.is_board_member(board.UserID)
    assert access.is_board_member(admin.UserID)
    assert not access.is_board_member(helper.UserID)
    # Board role in another school does not carry over
    assert not access.is_board_member(creator.UserID)

    assert access.get_plan_role(creator.UserID, plan.EventPlanID) == "lead"
    assert access.get_plan_role(helper.UserID, plan.EventPlanID) == "member"
    assert access.get_plan_role(board.UserID, plan.EventPlanID) is None

    assert access.user_exists(helper.UserID)
    assert not access.user_exists(999999)
    assert access.is_school_member(helper.UserID)
    assert access.is_school_member(admin.UserID)
    assert not access.is_school_member(creator.UserID)
    assert not SqlPlanAccess(db_session, None, "2026-2027").is_school_member(helper.UserID)


def test_failed_bulk_add_leaves_no_task_rows(db_session, make_user, enroll, school):
    lead = make_user()
    enroll(lead, school)
    plan = _plan(db_session, school, lead)
    store = SqlEventPlanStore(db_session, school.SchoolID)
    wf = EventPlanWorkflow(
        store,
        SqlPlanAccess(db_session, school.SchoolID, "2026-2027"),
        default_school_year="2026-2027",
    )

    wf.add_task(plan.EventPlanID, lead.UserID, {"title": "Kept"})
    with pytest.raises(ValidationError):
        wf.bulk_add_tasks(
            plan.EventPlanID, lead.UserID, [{"title": "Buy balloons"}, {"title": "  "}]
        )

    rows = db_session.query(EventPlanTask).filter_by(EventPlanID=plan.EventPlanID).all()
    assert [t.Title for t in rows] == ["Kept"]


def test_store_rollback_discards_pending_task(db_session, make_user, school):
    plan = _plan(db_session, school, make_user())
    store = SqlEventPlanStore(db_session, school.SchoolID)

    store.add_task(EventPlanTask(EventPlanID=plan.EventPlanID, Title="Draft only", SortOrder=0))
    store.rollback()

    assert db_session.query(EventPlanTask).filter_by(EventPlanID=plan.EventPlanID).count() == 0
    assert store.get_plan(plan.EventPlanID) is not None
