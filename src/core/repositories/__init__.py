from src.core.repositories.base import Repository
from src.core.repositories.members import MemberRepository, normalize_email
from src.core.repositories.subscriptions import SubscriptionRepository
from src.core.repositories.users import UserRepository
from src.core.repositories.workspaces import WorkspaceRepository

__all__ = [
    "Repository",
    "MemberRepository",
    "SubscriptionRepository",
    "UserRepository",
    "WorkspaceRepository",
    "normalize_email",
]
