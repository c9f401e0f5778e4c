from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from dragonhub.models.user import Base

PLAN_STATUSES = ("draft", "pending_approval", "approved", "rejected", "completed")
MEMBER_ROLES = ("lead", "member")
VOTE_DECISIONS = ("approve", "reject")
TASK_TIMING_TAGS = ("day_of", "days_before", "week_plus_before")


class EventPlan(Base):
    __tablename__ = "EventPlan"
    EventPlanID = Column(Integer, primary_key=True, autoincrement=True)
    SchoolID = Column(Integer, ForeignKey("School.SchoolID"), nullable=False)
    Title = Column(String(255), nullable=False)
    Description = Column(Text, nullable=True)
    EventType = Column(String(100), nullable=True)
    EventDate = Column(DateTime, nullable=True)
    Location = Column(String(255), nullable=True)
    Budget = Column(String(100), nullable=True)  # free-text estimate, e.g. "$500"
    SchoolYear = Column(String(16), nullable=False)
    Status = Column(String(32), nullable=False, default="draft")
    CreatedBy = Column(Integer, ForeignKey("Users.UserID"), nullable=False)
    CreatedAt = Column(DateTime, server_default=func.now())
    UpdatedAt = Column(DateTime, server_default=func.now(), onupdate=func.now())


class EventPlanMember(Base):
    __tablename__ = "EventPlanMember"
    __table_args__ = (
        UniqueConstraint("EventPlanID", "UserID", name="uq_event_plan_member"),
    )
    EventPlanMemberID = Column(Integer, primary_key=True, autoincrement=True)
    EventPlanID = Column(Integer, ForeignKey("EventPlan.EventPlanID"), nullable=False)
    UserID = Column(Integer, ForeignKey("Users.UserID"), nullable=False)
    Role = Column(String(16), nullable=False)  # lead | member
    CreatedAt = Column(DateTime, server_default=func.now())


class EventPlanTask(Base):
    __tablename__ = "EventPlanTask"
    EventPlanTaskID = Column(Integer, primary_key=True, autoincrement=True)
    EventPlanID = Column(Integer, ForeignKey("EventPlan.EventPlanID"), nullable=False)
    Title = Column(String(255), nullable=False)
    Description = Column(Text, nullable=True)
    DueDate = Column(DateTime, nullable=True)
    Completed = Column(Boolean, nullable=False, default=False)
    AssignedTo = Column(Integer, ForeignKey("Users.UserID"), nullable=True)
    CreatedBy = Column(Integer, ForeignKey("Users.UserID"), nullable=True)
    SortOrder = Column(Integer, nullable=False, default=0)
    TimingTag = Column(String(32), nullable=True)  # day_of | days_before | week_plus_before
    CreatedAt = Column(DateTime, server_default=func.now())


class EventPlanApproval(Base):
    __tablename__ = "EventPlanApproval"
    # One active vote per board member per plan
    __table_args__ = (
        UniqueConstraint("EventPlanID", "UserID", name="uq_event_plan_approval"),
    )
    EventPlanApprovalID = Column(Integer, primary_key=True, autoincrement=True)
    EventPlanID = Column(Integer, ForeignKey("EventPlan.EventPlanID"), nullable=False)
    UserID = Column(Integer, ForeignKey("Users.UserID"), nullable=False)
    Vote = Column(String(16), nullable=False)  # approve | reject
    Comment = Column(Text, nullable=True)
    CreatedAt = Column(DateTime, server_default=func.now())


class EventPlanMessage(Base):
    __tablename__ = "EventPlanMessage"
    EventPlanMessageID = Column(Integer, primary_key=True, autoincrement=True)
    EventPlanID = Column(Integer, ForeignKey("EventPlan.EventPlanID"), nullable=False)
    AuthorID = Column(Integer, ForeignKey("Users.UserID"), nullable=True)
    Message = Column(Text, nullable=False)
    CreatedAt = Column(DateTime, server_default=func.now())


class EventPlanResource(Base):
    __tablename__ = "EventPlanResource"
    EventPlanResourceID = Column(Integer, primary_key=True, autoincrement=True)
    EventPlanID = Column(Integer, ForeignKey("EventPlan.EventPlanID"), nullable=False)
    KnowledgeArticleID = Column(Integer, nullable=True)
    Title = Column(String(255), nullable=False)
    Url = Column(String(1000), nullable=True)
    Notes = Column(Text, nullable=True)
    AddedBy = Column(Integer, ForeignKey("Users.UserID"), nullable=True)
    CreatedAt = Column(DateTime, server_default=func.now())
