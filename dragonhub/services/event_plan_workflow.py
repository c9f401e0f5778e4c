from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from dragonhub.models.event_plan import (
    MEMBER_ROLES,
    PLAN_STATUSES,
    TASK_TIMING_TAGS,
    VOTE_DECISIONS,
    EventPlan,
    EventPlanMember,
    EventPlanMessage,
    EventPlanResource,
    EventPlanTask,
)
from dragonhub.services.errors import (
    AuthError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from dragonhub.services.plan_access import PlanAccess
from dragonhub.services.revalidate import PLAN_LIST_PATH, ResourceSignal, plan_path

# Patchable plan fields -> EventPlan columns
PLAN_FIELDS = {
    "title": "Title",
    "description": "Description",
    "event_type": "EventType",
    "event_date": "EventDate",
    "location": "Location",
    "budget": "Budget",
}
TASK_FIELDS = ("title", "description", "due_date", "timing_tag", "assigned_to")

EDITABLE_STATUSES = ("draft", "pending_approval")
COMPLETABLE_STATUSES = ("draft", "pending_approval", "approved")
LEAD_AUTHORITY = ("board", "lead")


def _utcnow() -> datetime:
    # Naive UTC to match the DB schema
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _clean(value: Any) -> Optional[str]:
    """Strip strings; empty values become None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_datetime(value: Any, field: str) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        parsed = datetime.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid {field}: {value!r}")
    return _parse_datetime(parsed, field)


def _require_title(value: Any, what: str = "Title") -> str:
    title = _clean(value)
    if not title:
        raise ValidationError(f"{what} is required")
    return title


def _timing_tag(value: Any) -> Optional[str]:
    tag = _clean(value)
    if tag is not None and tag not in TASK_TIMING_TAGS:
        raise ValidationError(f"Invalid timing tag: {tag}")
    return tag


class EventPlanWorkflow:
    """Lifecycle and approval rules for event plans.

    Status moves draft -> pending_approval -> approved | rejected -> completed.
    Acceptance needs ``approval_threshold`` approve votes from board members;
    a single reject vote vetoes the plan. A rejected plan may be resubmitted
    when ``allow_resubmit`` is set.

    Every operation runs in one store transaction and, once committed, emits
    the affected resource paths on ``signal``.
    """

    def __init__(
        self,
        store,
        access: PlanAccess,
        signal: Optional[ResourceSignal] = None,
        approval_threshold: int = 2,
        allow_resubmit: bool = True,
        default_school_year: Optional[str] = None,
    ):
        if approval_threshold < 1:
            raise ValueError("approval_threshold must be at least 1")
        self.store = store
        self.access = access
        self.signal = signal or ResourceSignal()
        self.approval_threshold = approval_threshold
        self.allow_resubmit = allow_resubmit
        self.default_school_year = default_school_year

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise

    # Guards

    def _plan(self, plan_id: int, for_update: bool = False) -> EventPlan:
        plan = self.store.get_plan(plan_id, for_update=for_update)
        if plan is None:
            raise NotFoundError("Event plan not found")
        return plan

    def _task(self, task_id: int) -> EventPlanTask:
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found")
        return task

    def _authority(self, plan: EventPlan, actor_id: Optional[int]) -> Optional[str]:
        """Return "board", "lead", "member" or None for the actor on this plan."""
        if actor_id is None:
            return None
        if self.access.is_board_member(actor_id):
            return "board"
        return self.access.get_plan_role(actor_id, plan.EventPlanID)

    def _require_lead(self, plan: EventPlan, actor_id: Optional[int]) -> str:
        if actor_id is None:
            raise AuthError("Unauthorized")
        authority = self._authority(plan, actor_id)
        if authority not in LEAD_AUTHORITY:
            raise AuthError("Unauthorized: plan lead or board access required")
        return authority

    def _require_member(self, plan: EventPlan, actor_id: Optional[int]) -> str:
        if actor_id is None:
            raise AuthError("Unauthorized")
        authority = self._authority(plan, actor_id)
        if authority is None:
            raise AuthError("Unauthorized: not an event plan member")
        return authority

    def _require_school_user(self, user_id: int) -> None:
        if not self.access.user_exists(user_id):
            raise NotFoundError("User not found")
        if not self.access.is_school_member(user_id):
            raise ValidationError("User is not a member of this school")

    def _require_plan_member(self, plan: EventPlan, user_id: Optional[int]) -> None:
        if user_id is None:
            return
        self._require_school_user(user_id)
        if self.access.get_plan_role(user_id, plan.EventPlanID) is None:
            raise ValidationError("Assignee must be a member of the event plan")

    def _set_status(self, plan: EventPlan, status: str) -> None:
        plan.Status = status
        plan.UpdatedAt = _utcnow()
        self.store.put_plan(plan)

    def _emit(self, *paths: str) -> None:
        self.signal.emit(paths)

    # Plans

    def create_plan(self, creator_id: Optional[int], fields: Mapping[str, Any]) -> EventPlan:
        if creator_id is None:
            raise AuthError("Unauthorized")
        if self.store.school_id is None:
            raise ValidationError("No school selected")
        unknown = set(fields) - set(PLAN_FIELDS) - {"school_year"}
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        title = _require_title(fields.get("title"))
        school_year = _clean(fields.get("school_year")) or self.default_school_year
        if not school_year:
            raise ValidationError("School year is required")

        with self._transaction():
            plan = EventPlan(
                Title=title,
                Description=_clean(fields.get("description")),
                EventType=_clean(fields.get("event_type")),
                EventDate=_parse_datetime(fields.get("event_date"), "event_date"),
                Location=_clean(fields.get("location")),
                Budget=_clean(fields.get("budget")),
                SchoolYear=school_year,
                Status="draft",
                CreatedBy=creator_id,
            )
            self.store.add_plan(plan)
            self.store.add_member(
                EventPlanMember(EventPlanID=plan.EventPlanID, UserID=creator_id, Role="lead")
            )
        self._emit(PLAN_LIST_PATH)
        return plan

    def update_plan_fields(
        self, plan_id: int, actor_id: Optional[int], patch: Mapping[str, Any]
    ) -> EventPlan:
        unknown = set(patch) - set(PLAN_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_lead(plan, actor_id)
            if plan.Status not in EDITABLE_STATUSES:
                raise InvalidStateError(f"Plan is {plan.Status} and can no longer be edited")
            for key, value in patch.items():
                if key == "title":
                    plan.Title = _require_title(value)
                elif key == "event_date":
                    plan.EventDate = _parse_datetime(value, key)
                else:
                    setattr(plan, PLAN_FIELDS[key], _clean(value))
            plan.UpdatedAt = _utcnow()
            self.store.put_plan(plan)
        self._emit(plan_path(plan_id), PLAN_LIST_PATH)
        return plan

    def list_plans(
        self, status: Optional[str] = None, school_year: Optional[str] = None
    ) -> List[EventPlan]:
        if status is not None and status not in PLAN_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        return self.store.list_plans(status=status, school_year=school_year)

    def get_plan_detail(self, plan_id: int) -> Dict[str, Any]:
        plan = self._plan(plan_id)
        votes = self.store.list_votes_for_plan(plan_id)
        return {
            "plan": plan,
            "members": self.store.list_members(plan_id),
            "tasks": self.store.list_tasks(plan_id),
            "votes": votes,
            "messages": self.store.list_messages(plan_id),
            "resources": self.store.list_resources(plan_id),
            "approve_count": sum(1 for v in votes if v.Vote == "approve"),
            "reject_count": sum(1 for v in votes if v.Vote == "reject"),
            "approval_threshold": self.approval_threshold,
        }

    # Status transitions

    def submit_for_approval(self, plan_id: int, actor_id: Optional[int]) -> EventPlan:
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_lead(plan, actor_id)
            if plan.Status == "rejected" and not self.allow_resubmit:
                raise InvalidStateError("Rejected plans cannot be resubmitted")
            if plan.Status not in ("draft", "rejected"):
                raise InvalidStateError(
                    "Only draft or rejected plans can be submitted for approval"
                )
            _require_title(plan.Title)
            # Votes from an earlier round do not carry over
            self.store.clear_votes(plan_id)
            self._set_status(plan, "pending_approval")
        self._emit(plan_path(plan_id), PLAN_LIST_PATH)
        return plan

    def cast_vote(
        self,
        plan_id: int,
        board_member_id: Optional[int],
        decision: str,
        comment: Optional[str] = None,
    ) -> EventPlan:
        if decision not in VOTE_DECISIONS:
            raise ValidationError(f"Invalid vote: {decision!r}")
        if board_member_id is None or not self.access.is_board_member(board_member_id):
            raise AuthError("Unauthorized: PTA board access required")
        with self._transaction():
            # Row lock: concurrent votes on one plan see each other's rows
            plan = self._plan(plan_id, for_update=True)
            if plan.Status != "pending_approval":
                raise InvalidStateError("Can only vote on plans pending approval")
            self.store.upsert_vote(plan_id, board_member_id, decision, _clean(comment))
            if decision == "reject":
                self._set_status(plan, "rejected")
            elif self.store.count_votes(plan_id, "approve") >= self.approval_threshold:
                self._set_status(plan, "approved")
        self._emit(plan_path(plan_id), PLAN_LIST_PATH)
        return plan

    def approve_plan(
        self, plan_id: int, board_member_id: Optional[int], comment: Optional[str] = None
    ) -> EventPlan:
        return self.cast_vote(plan_id, board_member_id, "approve", comment)

    def reject_plan(
        self, plan_id: int, board_member_id: Optional[int], comment: Optional[str] = None
    ) -> EventPlan:
        return self.cast_vote(plan_id, board_member_id, "reject", comment)

    def complete_plan(self, plan_id: int, actor_id: Optional[int]) -> EventPlan:
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_lead(plan, actor_id)
            if plan.Status not in COMPLETABLE_STATUSES:
                raise InvalidStateError(f"Plan is {plan.Status} and cannot be completed")
            self._set_status(plan, "completed")
        self._emit(plan_path(plan_id), PLAN_LIST_PATH)
        return plan

    def complete_elapsed_plans(self, now: Optional[datetime] = None) -> List[int]:
        """Mark approved plans whose event date has passed as completed."""
        cutoff = _parse_datetime(now, "now") if now is not None else _utcnow()
        with self._transaction():
            plans = self.store.list_elapsed_plans(cutoff)
            for plan in plans:
                self._set_status(plan, "completed")
        ids = [int(p.EventPlanID) for p in plans]
        if ids:
            self._emit(PLAN_LIST_PATH, *(plan_path(i) for i in ids))
        return ids

    # Members

    def _validate_role(self, role: str) -> str:
        if role not in MEMBER_ROLES:
            raise ValidationError(f"Invalid role: {role!r}")
        return role

    def add_member(
        self, plan_id: int, actor_id: Optional[int], user_id: int, role: str = "member"
    ) -> EventPlanMember:
        self._validate_role(role)
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_lead(plan, actor_id)
            self._require_school_user(user_id)
            if self.store.get_member(plan_id, user_id) is not None:
                raise ValidationError("User is already a member of this plan")
            member = self.store.add_member(
                EventPlanMember(EventPlanID=plan_id, UserID=user_id, Role=role)
            )
        self._emit(plan_path(plan_id))
        return member

    def remove_member(self, plan_id: int, actor_id: Optional[int], user_id: int) -> None:
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_lead(plan, actor_id)
            member = self.store.get_member(plan_id, user_id)
            if member is None:
                raise NotFoundError("Member not found")
            if member.Role == "lead" and self.store.count_leads(plan_id) <= 1:
                raise InvalidStateError("Cannot remove the last lead")
            self.store.delete_member(member)
        self._emit(plan_path(plan_id))

    def update_member_role(
        self, plan_id: int, actor_id: Optional[int], user_id: int, role: str
    ) -> EventPlanMember:
        self._validate_role(role)
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_lead(plan, actor_id)
            member = self.store.get_member(plan_id, user_id)
            if member is None:
                raise NotFoundError("Member not found")
            if member.Role == "lead" and role != "lead" and self.store.count_leads(plan_id) <= 1:
                raise InvalidStateError("Cannot demote the last lead")
            member.Role = role
            self.store.add_member(member)
        self._emit(plan_path(plan_id))
        return member

    def join_plan(self, plan_id: int, user_id: Optional[int]) -> EventPlanMember:
        if user_id is None:
            raise AuthError("Unauthorized")
        with self._transaction():
            self._plan(plan_id)
            existing = self.store.get_member(plan_id, user_id)
            if existing is not None:
                return existing
            member = self.store.add_member(
                EventPlanMember(EventPlanID=plan_id, UserID=user_id, Role="member")
            )
        self._emit(plan_path(plan_id))
        return member

    # Tasks

    def _new_task(
        self, plan: EventPlan, actor_id: int, fields: Mapping[str, Any], sort_order: int
    ) -> EventPlanTask:
        unknown = set(fields) - set(TASK_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        assignee = fields.get("assigned_to") or None
        self._require_plan_member(plan, assignee)
        return EventPlanTask(
            EventPlanID=plan.EventPlanID,
            Title=_require_title(fields.get("title"), "Task title"),
            Description=_clean(fields.get("description")),
            DueDate=_parse_datetime(fields.get("due_date"), "due_date"),
            TimingTag=_timing_tag(fields.get("timing_tag")),
            AssignedTo=assignee,
            Completed=False,
            SortOrder=sort_order,
            CreatedBy=actor_id,
        )

    def add_task(
        self, plan_id: int, actor_id: Optional[int], fields: Mapping[str, Any]
    ) -> EventPlanTask:
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_lead(plan, actor_id)
            task = self._new_task(plan, actor_id, fields, self.store.max_task_order(plan_id) + 1)
            self.store.add_task(task)
        self._emit(plan_path(plan_id))
        return task

    def bulk_add_tasks(
        self, plan_id: int, actor_id: Optional[int], items: Iterable[Mapping[str, Any]]
    ) -> List[EventPlanTask]:
        items = list(items)
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_lead(plan, actor_id)
            if not items:
                return []
            start = self.store.max_task_order(plan_id) + 1
            tasks = [
                self._new_task(plan, actor_id, item, start + index)
                for index, item in enumerate(items)
            ]
            for task in tasks:
                self.store.add_task(task)
        self._emit(plan_path(plan_id))
        return tasks

    def update_task(
        self, task_id: int, actor_id: Optional[int], patch: Mapping[str, Any]
    ) -> EventPlanTask:
        unknown = set(patch) - set(TASK_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(sorted(unknown))}")
        with self._transaction():
            task = self._task(task_id)
            plan = self._plan(task.EventPlanID)
            self._require_member(plan, actor_id)
            for key, value in patch.items():
                if key == "title":
                    task.Title = _require_title(value, "Task title")
                elif key == "description":
                    task.Description = _clean(value)
                elif key == "due_date":
                    task.DueDate = _parse_datetime(value, key)
                elif key == "timing_tag":
                    task.TimingTag = _timing_tag(value)
                elif key == "assigned_to":
                    self._require_plan_member(plan, value or None)
                    task.AssignedTo = value or None
            self.store.put_task(task)
        self._emit(plan_path(task.EventPlanID))
        return task

    def toggle_task(self, task_id: int, actor_id: Optional[int]) -> EventPlanTask:
        with self._transaction():
            task = self._task(task_id)
            plan = self._plan(task.EventPlanID)
            self._require_member(plan, actor_id)
            task.Completed = not bool(task.Completed)
            self.store.put_task(task)
        self._emit(plan_path(task.EventPlanID))
        return task

    def assign_task(
        self, task_id: int, actor_id: Optional[int], assignee_id: Optional[int]
    ) -> EventPlanTask:
        return self.update_task(task_id, actor_id, {"assigned_to": assignee_id})

    def delete_task(self, task_id: int, actor_id: Optional[int]) -> None:
        with self._transaction():
            task = self._task(task_id)
            plan_id = task.EventPlanID
            self._require_lead(self._plan(plan_id), actor_id)
            self.store.delete_task(task)
        self._emit(plan_path(plan_id))

    def reorder_tasks(
        self, plan_id: int, actor_id: Optional[int], task_ids: Iterable[int]
    ) -> List[EventPlanTask]:
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_member(plan, actor_id)
            by_id = {int(t.EventPlanTaskID): t for t in self.store.list_tasks(plan_id)}
            # Ids from other plans are ignored
            for index, task_id in enumerate(task_ids):
                task = by_id.get(int(task_id))
                if task is not None:
                    task.SortOrder = index
                    self.store.put_task(task)
        self._emit(plan_path(plan_id))
        return self.store.list_tasks(plan_id)

    # Messages and resources

    def post_message(self, plan_id: int, actor_id: Optional[int], text: str) -> EventPlanMessage:
        body = _clean(text)
        if not body:
            raise ValidationError("Message is required")
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_member(plan, actor_id)
            message = self.store.add_message(
                EventPlanMessage(EventPlanID=plan_id, AuthorID=actor_id, Message=body)
            )
        self._emit(plan_path(plan_id))
        return message

    def add_resource(
        self, plan_id: int, actor_id: Optional[int], fields: Mapping[str, Any]
    ) -> EventPlanResource:
        title = _require_title(fields.get("title"))
        with self._transaction():
            plan = self._plan(plan_id)
            self._require_member(plan, actor_id)
            resource = self.store.add_resource(
                EventPlanResource(
                    EventPlanID=plan_id,
                    KnowledgeArticleID=fields.get("knowledge_article_id") or None,
                    Title=title,
                    Url=_clean(fields.get("url")),
                    Notes=_clean(fields.get("notes")),
                    AddedBy=actor_id,
                )
            )
        self._emit(plan_path(plan_id))
        return resource

    def remove_resource(self, resource_id: int, actor_id: Optional[int]) -> None:
        with self._transaction():
            resource = self.store.get_resource(resource_id)
            if resource is None:
                raise NotFoundError("Resource not found")
            plan_id = resource.EventPlanID
            self._require_lead(self._plan(plan_id), actor_id)
            self.store.delete_resource(resource)
        self._emit(plan_path(plan_id))
