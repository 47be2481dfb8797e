from src.models.base import Base, TimestampedBase
from src.models.member import MemberRole, MemberStatus, WorkspaceMember
from src.models.subscription import Subscription
from src.models.user import User
from src.models.workspace import Workspace

__all__ = [
    "Base",
    "TimestampedBase",
    "MemberRole",
    "MemberStatus",
    "Subscription",
    "User",
    "Workspace",
    "WorkspaceMember",
]
