from __future__ import annotations

from uuid import UUID

from src.core.errors import ForbiddenError
from src.core.repositories.members import MemberRepository
from src.models.member import MemberRole, WorkspaceMember

ROLE_RANK: dict[MemberRole, int] = {
    MemberRole.MEMBER: 1,
    MemberRole.ADMIN: 2,
}


class WorkspaceAuthorizer:
    def __init__(self, members: MemberRepository) -> None:
        self.members = members

    async def assert_role(
        self,
        user_id: UUID,
        workspace_id: UUID,
        min_role: MemberRole,
    ) -> WorkspaceMember:
        membership = await self.members.get_by_user_in_workspace(workspace_id, user_id)
        if membership is None:
            raise ForbiddenError("You do not have access to this workspace")

        if ROLE_RANK[MemberRole(membership.role)] < ROLE_RANK[min_role]:
            raise ForbiddenError(f"Workspace role '{min_role.value}' is required for this operation")

        return membership
