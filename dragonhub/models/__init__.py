# Package init for dragonhub.models
from .event_plan import EventPlan as EventPlan
from .event_plan import EventPlanApproval as EventPlanApproval
from .event_plan import EventPlanMember as EventPlanMember
from .event_plan import EventPlanMessage as EventPlanMessage
from .event_plan import EventPlanResource as EventPlanResource
from .event_plan import EventPlanTask as EventPlanTask
from .error_log import AppErrorLog as AppErrorLog
from .school import School as School
from .school import SchoolMembership as SchoolMembership
from .user import Base as Base  # explicit re-export
from .user import User as User
from .user import UserSession as UserSession
