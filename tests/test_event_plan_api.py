import pytest

from dragonhub.models import AppErrorLog, EventPlan


@pytest.fixture
def people(make_user, enroll, school):
    lead = make_user(first="Lee")
    helper = make_user(first="Hal")
    board_a = make_user(first="Bea")
    board_b = make_user(first="Bo")
    outsider = make_user(first="Oz")
    enroll(lead, school)
    enroll(helper, school)
    enroll(outsider, school)
    enroll(board_a, school, role="pta_board")
    enroll(board_b, school, role="admin")
    return {
        "lead": lead,
        "helper": helper,
        "board_a": board_a,
        "board_b": board_b,
        "outsider": outsider,
    }


def _create(login, user, title="Fall Festival", **extra):
    c = login(user)
    r = c.post("/event-plans", data={"title": title, **extra})
    assert r.status_code == 200, r.text
    return r.json()["plan"]["id"]


def test_requires_login(client):
    r = client.get("/event-plans")
    assert r.status_code == 302
    assert r.headers["location"] == "/login"


def test_no_school_is_bad_request(client, make_user, login):
    login(make_user())
    r = client.get("/event-plans")
    assert r.status_code == 400
    assert r.json()["detail"] == "No school selected"


def test_full_approval_flow(login, people):
    plan_id = _create(login, people["lead"], event_date="2026-11-14")

    c = login(people["lead"])
    r = c.post(f"/event-plans/{plan_id}/submit")
    assert r.status_code == 200
    body = r.json()
    assert body["plan"]["status"] == "pending_approval"
    assert body["invalidated"] == [f"/events/{plan_id}", "/events"]

    c = login(people["board_a"])
    r = c.post(f"/event-plans/{plan_id}/vote", data={"decision": "approve"})
    assert r.json()["plan"]["status"] == "pending_approval"

    c = login(people["board_b"])
    r = c.post(f"/event-plans/{plan_id}/approve", data={"comment": "Great idea"})
    assert r.json()["plan"]["status"] == "approved"

    detail = c.get(f"/event-plans/{plan_id}").json()
    assert detail["approve_count"] == 2
    assert detail["plan"]["event_date"] == "2026-11-14T00:00:00"
    assert {v["user_id"] for v in detail["votes"]} == {
        people["board_a"].UserID,
        people["board_b"].UserID,
    }


def test_veto(login, people):
    plan_id = _create(login, people["lead"])
    login(people["lead"]).post(f"/event-plans/{plan_id}/submit")
    login(people["board_a"]).post(f"/event-plans/{plan_id}/approve")
    r = login(people["board_b"]).post(f"/event-plans/{plan_id}/reject", data={"comment": "No"})
    assert r.status_code == 200
    assert r.json()["plan"]["status"] == "rejected"


def test_non_board_vote_is_forbidden(login, people, db_session):
    plan_id = _create(login, people["lead"])
    c = login(people["lead"])
    c.post(f"/event-plans/{plan_id}/submit")
    r = c.post(f"/event-plans/{plan_id}/vote", data={"decision": "approve"})
    assert r.status_code == 403
    row = db_session.query(AppErrorLog).filter(AppErrorLog.StatusCode == 403).first()
    assert row is not None
    assert row.Path == f"/event-plans/{plan_id}/vote"
    assert row.ErrorType == "AuthError"
    assert row.UserID == people["lead"].UserID


def test_bad_vote_decision(login, people):
    plan_id = _create(login, people["lead"])
    login(people["lead"]).post(f"/event-plans/{plan_id}/submit")
    r = login(people["board_a"]).post(f"/event-plans/{plan_id}/vote", data={"decision": "abstain"})
    assert r.status_code == 400


def test_outsider_cannot_submit(login, people, db_session):
    plan_id = _create(login, people["lead"])
    r = login(people["outsider"]).post(f"/event-plans/{plan_id}/submit")
    assert r.status_code == 403
    db_session.expire_all()
    assert db_session.get(EventPlan, plan_id).Status == "draft"


def test_edit_after_approval_conflicts(login, people):
    plan_id = _create(login, people["lead"])
    login(people["lead"]).post(f"/event-plans/{plan_id}/submit")
    login(people["board_a"]).post(f"/event-plans/{plan_id}/approve")
    login(people["board_b"]).post(f"/event-plans/{plan_id}/approve")

    c = login(people["lead"])
    r = c.post(f"/event-plans/{plan_id}/edit", data={"title": "Renamed"})
    assert r.status_code == 409
    assert c.get(f"/event-plans/{plan_id}").json()["plan"]["title"] == "Fall Festival"


def test_missing_title_is_bad_request(login, people):
    r = login(people["lead"]).post("/event-plans", data={"title": " "})
    assert r.status_code == 400
    assert r.json()["detail"] == "Title is required"


def test_plan_from_other_school_is_not_found(login, people, make_user, enroll, other_school):
    plan_id = _create(login, people["lead"])
    stranger = make_user(first="Sam")
    enroll(stranger, other_school, role="pta_board")
    r = login(stranger).get(f"/event-plans/{plan_id}")
    assert r.status_code == 404


def test_school_cookie_selects_school(login, people, enroll, other_school):
    enroll(people["lead"], other_school)
    plan_id = _create(login, people["lead"], title="Home plan")

    c = login(people["lead"])
    r = c.post(f"/schools/{other_school.SchoolID}/select")
    assert r.status_code == 200
    assert "current_school_id=" in r.headers["set-cookie"]
    c.cookies.set("current_school_id", str(other_school.SchoolID))
    assert c.get(f"/event-plans/{plan_id}").status_code == 404
    assert c.get("/event-plans").json()["items"] == []


def test_select_school_without_membership_is_forbidden(login, people, other_school):
    r = login(people["outsider"]).post(f"/schools/{other_school.SchoolID}/select")
    assert r.status_code == 403


def test_list_filters_by_status(login, people):
    draft_id = _create(login, people["lead"], title="Draft one")
    pending_id = _create(login, people["lead"], title="Pending one")
    c = login(people["lead"])
    c.post(f"/event-plans/{pending_id}/submit")

    items = c.get("/event-plans", params={"status": "pending_approval"}).json()["items"]
    assert [i["id"] for i in items] == [pending_id]
    all_ids = {i["id"] for i in c.get("/event-plans").json()["items"]}
    assert {draft_id, pending_id} <= all_ids
    assert c.get("/event-plans", params={"status": "bogus"}).status_code == 400


def test_members_and_last_lead(login, people):
    lead, helper = people["lead"], people["helper"]
    plan_id = _create(login, lead)
    c = login(lead)

    r = c.post(f"/event-plans/{plan_id}/members", data={"user_id": helper.UserID})
    assert r.status_code == 200
    assert r.json()["invalidated"] == [f"/events/{plan_id}"]

    r = c.post(f"/event-plans/{plan_id}/members/{lead.UserID}/remove")
    assert r.status_code == 409
    r = c.post(f"/event-plans/{plan_id}/members/{lead.UserID}/role", data={"role": "member"})
    assert r.status_code == 409

    r = c.post(f"/event-plans/{plan_id}/members/{helper.UserID}/role", data={"role": "lead"})
    assert r.json()["member"]["role"] == "lead"
    r = c.post(f"/event-plans/{plan_id}/members/{lead.UserID}/remove")
    assert r.status_code == 200


def test_join_and_tasks(login, people):
    plan_id = _create(login, people["lead"])

    r = login(people["helper"]).post(f"/event-plans/{plan_id}/join")
    assert r.json()["member"] == {"user_id": people["helper"].UserID, "role": "member"}

    c = login(people["lead"])
    r = c.post(
        f"/event-plans/{plan_id}/tasks",
        data={"title": "Book bounce house", "timing_tag": "week_plus_before"},
    )
    assert r.status_code == 200
    first = r.json()["task"]
    assert first["sort_order"] == 0

    r = c.post(
        f"/event-plans/{plan_id}/tasks/bulk",
        json={"tasks": [{"title": "Buy snacks"}, {"title": "Sweep gym", "timing_tag": "day_of"}]},
    )
    bulk = r.json()["tasks"]
    assert [t["sort_order"] for t in bulk] == [1, 2]

    r = c.post(
        f"/event-plans/tasks/{first['id']}/assign", data={"assignee_id": people["helper"].UserID}
    )
    assert r.json()["task"]["assigned_to"] == people["helper"].UserID
    r = c.post(
        f"/event-plans/tasks/{first['id']}/assign", data={"assignee_id": people["outsider"].UserID}
    )
    assert r.status_code == 400

    h = login(people["helper"])
    r = h.post(f"/event-plans/tasks/{first['id']}/toggle")
    assert r.json()["done"] is True
    assert h.post(f"/event-plans/tasks/{first['id']}/delete").status_code == 403

    ids = [bulk[1]["id"], first["id"], bulk[0]["id"]]
    r = h.post(f"/event-plans/{plan_id}/tasks/reorder", json={"task_ids": ids})
    assert [t["id"] for t in r.json()["tasks"]] == ids

    c = login(people["lead"])
    r = c.post(f"/event-plans/tasks/{first['id']}/edit", data={"title": "Book castle"})
    assert r.json()["task"]["title"] == "Book castle"
    assert c.post(f"/event-plans/tasks/{first['id']}/delete").status_code == 200
    assert c.post(f"/event-plans/tasks/{first['id']}/toggle").status_code == 404


def test_messages_and_resources(login, people):
    plan_id = _create(login, people["lead"])

    r = login(people["outsider"]).post(f"/event-plans/{plan_id}/messages", data={"message": "hi"})
    assert r.status_code == 403

    c = login(people["board_a"])
    r = c.post(f"/event-plans/{plan_id}/messages", data={"message": "Need a budget line"})
    assert r.status_code == 200
    assert r.json()["message"]["author_id"] == people["board_a"].UserID

    c = login(people["lead"])
    r = c.post(
        f"/event-plans/{plan_id}/resources",
        data={"title": "Last year's checklist", "url": "https://example.com/checklist"},
    )
    res_id = r.json()["resource"]["id"]
    detail = c.get(f"/event-plans/{plan_id}").json()
    assert [m["message"] for m in detail["messages"]] == ["Need a budget line"]
    assert [x["id"] for x in detail["resources"]] == [res_id]

    assert c.post(f"/event-plans/resources/{res_id}/remove").status_code == 200
    assert c.get(f"/event-plans/{plan_id}").json()["resources"] == []


def test_complete(login, people):
    plan_id = _create(login, people["lead"])
    c = login(people["lead"])
    r = c.post(f"/event-plans/{plan_id}/complete")
    assert r.json()["plan"]["status"] == "completed"
    assert c.post(f"/event-plans/{plan_id}/complete").status_code == 409


def test_missing_plan_is_not_found(login, people):
    r = login(people["lead"]).post("/event-plans/999999/submit")
    assert r.status_code == 404
    assert r.headers.get("X-Request-ID")


def test_add_member_checks_user_and_school(login, people, make_user, enroll, other_school):
    plan_id = _create(login, people["lead"])
    stranger = make_user(first="Sam")
    enroll(stranger, other_school)
    c = login(people["lead"])

    r = c.post(f"/event-plans/{plan_id}/members", data={"user_id": 999999})
    assert r.status_code == 404
    assert r.json()["detail"] == "User not found"

    r = c.post(f"/event-plans/{plan_id}/members", data={"user_id": stranger.UserID})
    assert r.status_code == 400
    assert r.json()["detail"] == "User is not a member of this school"

    members = c.get(f"/event-plans/{plan_id}").json()["members"]
    assert stranger.UserID not in {m["user_id"] for m in members}


def test_plan_member_edits_and_assigns_tasks(login, people):
    plan_id = _create(login, people["lead"])
    r = login(people["lead"]).post(f"/event-plans/{plan_id}/tasks", data={"title": "Bake cookies"})
    task_id = r.json()["task"]["id"]

    h = login(people["helper"])
    h.post(f"/event-plans/{plan_id}/join")
    r = h.post(f"/event-plans/tasks/{task_id}/edit", data={"title": "Bake brownies"})
    assert r.status_code == 200
    assert r.json()["task"]["title"] == "Bake brownies"

    r = h.post(
        f"/event-plans/tasks/{task_id}/assign", data={"assignee_id": people["helper"].UserID}
    )
    assert r.status_code == 200
    assert r.json()["task"]["assigned_to"] == people["helper"].UserID

    r = login(people["outsider"]).post(f"/event-plans/tasks/{task_id}/edit", data={"title": "x"})
    assert r.status_code == 403
