from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from dragonhub.models.event_plan import (
    EventPlan,
    EventPlanApproval,
    EventPlanMember,
    EventPlanMessage,
    EventPlanResource,
    EventPlanTask,
)


class SqlEventPlanStore:
    """Event plan persistence for one school.

    Reads are scoped to ``school_id`` so a plan from another school looks missing.
    A store built with ``school_id=None`` sees every school (jobs and scripts only).
    Writes are flushed; the workflow commits once per operation.
    """

    def __init__(self, db: Session, school_id: Optional[int]):
        self.db = db
        self.school_id = school_id

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # Plans

    def _plans(self):
        q = self.db.query(EventPlan)
        if self.school_id is not None:
            q = q.filter(EventPlan.SchoolID == self.school_id)
        return q

    def get_plan(self, plan_id: int, for_update: bool = False) -> Optional[EventPlan]:
        q = self._plans().filter(EventPlan.EventPlanID == plan_id)
        if for_update:
            # Serializes concurrent votes on the same plan
            q = q.with_for_update()
        return q.first()

    def list_plans(
        self, status: Optional[str] = None, school_year: Optional[str] = None
    ) -> List[EventPlan]:
        q = self._plans()
        if status:
            q = q.filter(EventPlan.Status == status)
        if school_year:
            q = q.filter(EventPlan.SchoolYear == school_year)
        return q.order_by(EventPlan.CreatedAt.desc(), EventPlan.EventPlanID.desc()).all()

    def list_elapsed_plans(self, now: datetime) -> List[EventPlan]:
        return (
            self._plans()
            .filter(
                EventPlan.Status == "approved",
                EventPlan.EventDate.isnot(None),
                EventPlan.EventDate < now,
            )
            .all()
        )

    def add_plan(self, plan: EventPlan) -> EventPlan:
        if plan.SchoolID is None:
            plan.SchoolID = self.school_id
        self.db.add(plan)
        self.db.flush()
        return plan

    def put_plan(self, plan: EventPlan) -> None:
        self.db.add(plan)
        self.db.flush()

    # Members

    def list_members(self, plan_id: int) -> List[EventPlanMember]:
        return (
            self.db.query(EventPlanMember)
            .filter(EventPlanMember.EventPlanID == plan_id)
            .order_by(EventPlanMember.EventPlanMemberID)
            .all()
        )

    def get_member(self, plan_id: int, user_id: int) -> Optional[EventPlanMember]:
        return (
            self.db.query(EventPlanMember)
            .filter(EventPlanMember.EventPlanID == plan_id, EventPlanMember.UserID == user_id)
            .first()
        )

    def add_member(self, member: EventPlanMember) -> EventPlanMember:
        self.db.add(member)
        self.db.flush()
        return member

    def delete_member(self, member: EventPlanMember) -> None:
        self.db.delete(member)
        self.db.flush()

    def count_leads(self, plan_id: int) -> int:
        return (
            self.db.query(func.count(EventPlanMember.EventPlanMemberID))
            .filter(EventPlanMember.EventPlanID == plan_id, EventPlanMember.Role == "lead")
            .scalar()
            or 0
        )

    # Votes

    def list_votes_for_plan(self, plan_id: int) -> List[EventPlanApproval]:
        return (
            self.db.query(EventPlanApproval)
            .filter(EventPlanApproval.EventPlanID == plan_id)
            .order_by(EventPlanApproval.EventPlanApprovalID)
            .all()
        )

    def upsert_vote(
        self, plan_id: int, user_id: int, decision: str, comment: Optional[str] = None
    ) -> EventPlanApproval:
        vote = (
            self.db.query(EventPlanApproval)
            .filter(EventPlanApproval.EventPlanID == plan_id, EventPlanApproval.UserID == user_id)
            .first()
        )
        if vote is None:
            vote = EventPlanApproval(EventPlanID=plan_id, UserID=user_id)
            self.db.add(vote)
        vote.Vote = decision
        vote.Comment = comment or None
        vote.CreatedAt = func.now()
        self.db.flush()
        return vote

    def count_votes(self, plan_id: int, decision: str) -> int:
        return (
            self.db.query(func.count(EventPlanApproval.EventPlanApprovalID))
            .filter(EventPlanApproval.EventPlanID == plan_id, EventPlanApproval.Vote == decision)
            .scalar()
            or 0
        )

    def clear_votes(self, plan_id: int) -> None:
        for vote in self.list_votes_for_plan(plan_id):
            self.db.delete(vote)
        self.db.flush()

    # Tasks

    def get_task(self, task_id: int) -> Optional[EventPlanTask]:
        q = self.db.query(EventPlanTask).filter(EventPlanTask.EventPlanTaskID == task_id)
        if self.school_id is not None:
            q = q.join(EventPlan, EventPlan.EventPlanID == EventPlanTask.EventPlanID).filter(
                EventPlan.SchoolID == self.school_id
            )
        return q.first()

    def list_tasks(self, plan_id: int) -> List[EventPlanTask]:
        return (
            self.db.query(EventPlanTask)
            .filter(EventPlanTask.EventPlanID == plan_id)
            .order_by(EventPlanTask.SortOrder, EventPlanTask.EventPlanTaskID)
            .all()
        )

    def max_task_order(self, plan_id: int) -> int:
        """Highest SortOrder on the plan, -1 when it has no tasks."""
        value = (
            self.db.query(func.max(EventPlanTask.SortOrder))
            .filter(EventPlanTask.EventPlanID == plan_id)
            .scalar()
        )
        return -1 if value is None else int(value)

    def add_task(self, task: EventPlanTask) -> EventPlanTask:
        self.db.add(task)
        self.db.flush()
        return task

    def put_task(self, task: EventPlanTask) -> None:
        self.db.add(task)
        self.db.flush()

    def delete_task(self, task: EventPlanTask) -> None:
        self.db.delete(task)
        self.db.flush()

    # Messages

    def add_message(self, message: EventPlanMessage) -> EventPlanMessage:
        self.db.add(message)
        self.db.flush()
        return message

    def list_messages(self, plan_id: int) -> List[EventPlanMessage]:
        return (
            self.db.query(EventPlanMessage)
            .filter(EventPlanMessage.EventPlanID == plan_id)
            .order_by(EventPlanMessage.EventPlanMessageID)
            .all()
        )

    # Resources

    def get_resource(self, resource_id: int) -> Optional[EventPlanResource]:
        q = self.db.query(EventPlanResource).filter(
            EventPlanResource.EventPlanResourceID == resource_id
        )
        if self.school_id is not None:
            q = q.join(EventPlan, EventPlan.EventPlanID == EventPlanResource.EventPlanID).filter(
                EventPlan.SchoolID == self.school_id
            )
        return q.first()

    def list_resources(self, plan_id: int) -> List[EventPlanResource]:
        return (
            self.db.query(EventPlanResource)
            .filter(EventPlanResource.EventPlanID == plan_id)
            .order_by(EventPlanResource.EventPlanResourceID)
            .all()
        )

    def add_resource(self, resource: EventPlanResource) -> EventPlanResource:
        self.db.add(resource)
        self.db.flush()
        return resource

    def delete_resource(self, resource: EventPlanResource) -> None:
        self.db.delete(resource)
        self.db.flush()
