from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from dragonhub.models.user import Base

SCHOOL_ROLES = ("admin", "pta_board", "member")
# Roles that carry approval/veto authority over event plans
BOARD_ROLES = ("admin", "pta_board")


class School(Base):
    __tablename__ = "School"
    SchoolID = Column(Integer, primary_key=True, autoincrement=True)
    Name = Column(String(255), nullable=False)
    JoinCode = Column(String(32), nullable=False, unique=True)
    Mascot = Column(String(100), nullable=True)
    IsActive = Column(Boolean, default=True)
    CreatedAt = Column(DateTime, server_default=func.now())


class SchoolMembership(Base):
    __tablename__ = "SchoolMembership"
    __table_args__ = (
        UniqueConstraint("SchoolID", "UserID", "SchoolYear", name="uq_school_membership"),
    )
    SchoolMembershipID = Column(Integer, primary_key=True, autoincrement=True)
    SchoolID = Column(Integer, ForeignKey("School.SchoolID"), nullable=False)
    UserID = Column(Integer, ForeignKey("Users.UserID"), nullable=False)
    Role = Column(String(16), nullable=False, default="member")  # admin | pta_board | member
    SchoolYear = Column(String(16), nullable=False)
    Status = Column(String(16), nullable=False, default="approved")  # pending | approved | expired
    CreatedAt = Column(DateTime, server_default=func.now())
