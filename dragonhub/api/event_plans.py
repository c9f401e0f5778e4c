import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Form, Request
from pydantic import BaseModel

from dragonhub.core.dependencies import get_event_plan_workflow
from dragonhub.models.event_plan import (
    EventPlan,
    EventPlanApproval,
    EventPlanMember,
    EventPlanMessage,
    EventPlanResource,
    EventPlanTask,
)
from dragonhub.services.auth import require_user
from dragonhub.services.event_plan_workflow import EventPlanWorkflow

router = APIRouter()
audit = logging.getLogger("audit")


class TaskIn(BaseModel):
    title: str = ""
    description: Optional[str] = None
    due_date: Optional[str] = None
    timing_tag: Optional[str] = None
    assigned_to: Optional[int] = None


class BulkTasksIn(BaseModel):
    tasks: List[TaskIn] = []


class ReorderTasksIn(BaseModel):
    task_ids: List[int] = []


# Serialization


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def plan_to_dict(p: EventPlan) -> Dict[str, Any]:
    return {
        "id": int(p.EventPlanID),
        "school_id": p.SchoolID,
        "title": p.Title,
        "description": p.Description,
        "event_type": p.EventType,
        "event_date": _iso(p.EventDate),
        "location": p.Location,
        "budget": p.Budget,
        "school_year": p.SchoolYear,
        "status": p.Status,
        "created_by": p.CreatedBy,
        "created_at": _iso(p.CreatedAt),
        "updated_at": _iso(p.UpdatedAt),
    }


def member_to_dict(m: EventPlanMember) -> Dict[str, Any]:
    return {"user_id": m.UserID, "role": m.Role}


def task_to_dict(t: EventPlanTask) -> Dict[str, Any]:
    return {
        "id": int(t.EventPlanTaskID),
        "plan_id": t.EventPlanID,
        "title": t.Title,
        "description": t.Description,
        "due_date": _iso(t.DueDate),
        "completed": bool(t.Completed),
        "assigned_to": t.AssignedTo,
        "sort_order": t.SortOrder,
        "timing_tag": t.TimingTag,
    }


def vote_to_dict(v: EventPlanApproval) -> Dict[str, Any]:
    return {"user_id": v.UserID, "vote": v.Vote, "comment": v.Comment}


def message_to_dict(m: EventPlanMessage) -> Dict[str, Any]:
    return {
        "id": int(m.EventPlanMessageID),
        "author_id": m.AuthorID,
        "message": m.Message,
        "created_at": _iso(m.CreatedAt),
    }


def resource_to_dict(r: EventPlanResource) -> Dict[str, Any]:
    return {
        "id": int(r.EventPlanResourceID),
        "title": r.Title,
        "url": r.Url,
        "notes": r.Notes,
        "knowledge_article_id": r.KnowledgeArticleID,
        "added_by": r.AddedBy,
    }


def _ok(wf: EventPlanWorkflow, **payload) -> Dict[str, Any]:
    return {"ok": True, **payload, "invalidated": list(wf.signal.emitted)}


def _audit(request: Request, action: str, user, **ctx) -> None:
    audit.info(
        action,
        extra={
            "user_id": getattr(user, "UserID", None),
            "request_id": getattr(request.state, "request_id", None),
            **ctx,
        },
    )


def _present(**fields) -> Dict[str, Any]:
    """Keep only the form fields the client actually sent."""
    return {k: v for k, v in fields.items() if v is not None}


# Tasks and resources addressed by their own id (registered before /{plan_id} routes)


@router.post("/event-plans/tasks/{task_id}/edit")
async def edit_task(
    task_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    due_date: Optional[str] = Form(None),
    timing_tag: Optional[str] = Form(None),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    patch = _present(
        title=title, description=description, due_date=due_date, timing_tag=timing_tag
    )
    task = wf.update_task(task_id, int(user.UserID), patch)
    return _ok(wf, task=task_to_dict(task))


@router.post("/event-plans/tasks/{task_id}/toggle")
async def toggle_task(
    task_id: int,
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    task = wf.toggle_task(task_id, int(user.UserID))
    return _ok(wf, task=task_to_dict(task), done=bool(task.Completed))


@router.post("/event-plans/tasks/{task_id}/assign")
async def assign_task(
    task_id: int,
    assignee_id: Optional[int] = Form(None),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    task = wf.assign_task(task_id, int(user.UserID), assignee_id)
    return _ok(wf, task=task_to_dict(task))


@router.post("/event-plans/tasks/{task_id}/delete")
async def delete_task(
    task_id: int,
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    wf.delete_task(task_id, int(user.UserID))
    return _ok(wf)


@router.post("/event-plans/resources/{resource_id}/remove")
async def remove_resource(
    resource_id: int,
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    wf.remove_resource(resource_id, int(user.UserID))
    return _ok(wf)


# Plans


@router.get("/event-plans")
async def list_event_plans(
    status: Optional[str] = None,
    school_year: Optional[str] = None,
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    plans = wf.list_plans(status=status or None, school_year=school_year or None)
    return {"ok": True, "items": [plan_to_dict(p) for p in plans]}


@router.post("/event-plans")
async def create_event_plan(
    request: Request,
    title: str = Form(""),
    description: str = Form(""),
    event_type: str = Form(""),
    event_date: str = Form(""),
    location: str = Form(""),
    budget: str = Form(""),
    school_year: str = Form(""),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    plan = wf.create_plan(
        int(user.UserID),
        {
            "title": title,
            "description": description,
            "event_type": event_type,
            "event_date": event_date,
            "location": location,
            "budget": budget,
            "school_year": school_year,
        },
    )
    _audit(request, "event_plan.created", user, plan_id=int(plan.EventPlanID))
    return _ok(wf, plan=plan_to_dict(plan))


@router.get("/event-plans/{plan_id}")
async def event_plan_detail(
    plan_id: int,
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    detail = wf.get_plan_detail(plan_id)
    return {
        "ok": True,
        "plan": plan_to_dict(detail["plan"]),
        "members": [member_to_dict(m) for m in detail["members"]],
        "tasks": [task_to_dict(t) for t in detail["tasks"]],
        "votes": [vote_to_dict(v) for v in detail["votes"]],
        "messages": [message_to_dict(m) for m in detail["messages"]],
        "resources": [resource_to_dict(r) for r in detail["resources"]],
        "approve_count": detail["approve_count"],
        "reject_count": detail["reject_count"],
        "approval_threshold": detail["approval_threshold"],
    }


@router.post("/event-plans/{plan_id}/edit")
async def edit_event_plan(
    plan_id: int,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    event_type: Optional[str] = Form(None),
    event_date: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    budget: Optional[str] = Form(None),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    patch = _present(
        title=title,
        description=description,
        event_type=event_type,
        event_date=event_date,
        location=location,
        budget=budget,
    )
    plan = wf.update_plan_fields(plan_id, int(user.UserID), patch)
    return _ok(wf, plan=plan_to_dict(plan))


@router.post("/event-plans/{plan_id}/submit")
async def submit_event_plan(
    request: Request,
    plan_id: int,
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    plan = wf.submit_for_approval(plan_id, int(user.UserID))
    _audit(request, "event_plan.submitted", user, plan_id=plan_id)
    return _ok(wf, plan=plan_to_dict(plan))


@router.post("/event-plans/{plan_id}/vote")
async def vote_on_event_plan(
    request: Request,
    plan_id: int,
    decision: str = Form(""),
    comment: str = Form(""),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    plan = wf.cast_vote(plan_id, int(user.UserID), decision.strip().lower(), comment)
    _audit(
        request, "event_plan.vote", user, plan_id=plan_id, decision=decision, status=plan.Status
    )
    return _ok(wf, plan=plan_to_dict(plan))


@router.post("/event-plans/{plan_id}/approve")
async def approve_event_plan(
    request: Request,
    plan_id: int,
    comment: str = Form(""),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    plan = wf.approve_plan(plan_id, int(user.UserID), comment)
    _audit(
        request, "event_plan.vote", user, plan_id=plan_id, decision="approve", status=plan.Status
    )
    return _ok(wf, plan=plan_to_dict(plan))


@router.post("/event-plans/{plan_id}/reject")
async def reject_event_plan(
    request: Request,
    plan_id: int,
    comment: str = Form(""),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    plan = wf.reject_plan(plan_id, int(user.UserID), comment)
    _audit(
        request, "event_plan.vote", user, plan_id=plan_id, decision="reject", status=plan.Status
    )
    return _ok(wf, plan=plan_to_dict(plan))


@router.post("/event-plans/{plan_id}/complete")
async def complete_event_plan(
    request: Request,
    plan_id: int,
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    plan = wf.complete_plan(plan_id, int(user.UserID))
    _audit(request, "event_plan.completed", user, plan_id=plan_id)
    return _ok(wf, plan=plan_to_dict(plan))


# Members


@router.post("/event-plans/{plan_id}/join")
async def join_event_plan(
    plan_id: int,
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    member = wf.join_plan(plan_id, int(user.UserID))
    return _ok(wf, member=member_to_dict(member))


@router.post("/event-plans/{plan_id}/members")
async def add_event_plan_member(
    plan_id: int,
    user_id: int = Form(...),
    role: str = Form("member"),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    member = wf.add_member(plan_id, int(user.UserID), user_id, role)
    return _ok(wf, member=member_to_dict(member))


@router.post("/event-plans/{plan_id}/members/{member_user_id}/remove")
async def remove_event_plan_member(
    request: Request,
    plan_id: int,
    member_user_id: int,
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    wf.remove_member(plan_id, int(user.UserID), member_user_id)
    _audit(request, "event_plan.member_removed", user, plan_id=plan_id, member=member_user_id)
    return _ok(wf)


@router.post("/event-plans/{plan_id}/members/{member_user_id}/role")
async def update_event_plan_member_role(
    plan_id: int,
    member_user_id: int,
    role: str = Form(...),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    member = wf.update_member_role(plan_id, int(user.UserID), member_user_id, role)
    return _ok(wf, member=member_to_dict(member))


# Tasks


@router.post("/event-plans/{plan_id}/tasks")
async def create_event_plan_task(
    plan_id: int,
    title: str = Form(""),
    description: str = Form(""),
    due_date: str = Form(""),
    timing_tag: str = Form(""),
    assigned_to: Optional[int] = Form(None),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    task = wf.add_task(
        plan_id,
        int(user.UserID),
        {
            "title": title,
            "description": description,
            "due_date": due_date,
            "timing_tag": timing_tag,
            "assigned_to": assigned_to,
        },
    )
    return _ok(wf, task=task_to_dict(task))


@router.post("/event-plans/{plan_id}/tasks/bulk")
async def bulk_create_event_plan_tasks(
    plan_id: int,
    body: BulkTasksIn,
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    tasks = wf.bulk_add_tasks(
        plan_id, int(user.UserID), [t.model_dump(exclude_none=True) for t in body.tasks]
    )
    return _ok(wf, tasks=[task_to_dict(t) for t in tasks])


@router.post("/event-plans/{plan_id}/tasks/reorder")
async def reorder_event_plan_tasks(
    plan_id: int,
    body: ReorderTasksIn,
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    tasks = wf.reorder_tasks(plan_id, int(user.UserID), body.task_ids)
    return _ok(wf, tasks=[task_to_dict(t) for t in tasks])


# Message board and resources


@router.post("/event-plans/{plan_id}/messages")
async def post_event_plan_message(
    plan_id: int,
    message: str = Form(""),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    msg = wf.post_message(plan_id, int(user.UserID), message)
    return _ok(wf, message=message_to_dict(msg))


@router.post("/event-plans/{plan_id}/resources")
async def add_event_plan_resource(
    plan_id: int,
    title: str = Form(""),
    url: str = Form(""),
    notes: str = Form(""),
    knowledge_article_id: Optional[int] = Form(None),
    user=Depends(require_user),
    wf: EventPlanWorkflow = Depends(get_event_plan_workflow),
):
    resource = wf.add_resource(
        plan_id,
        int(user.UserID),
        {
            "title": title,
            "url": url,
            "notes": notes,
            "knowledge_article_id": knowledge_article_id,
        },
    )
    return _ok(wf, resource=resource_to_dict(resource))
