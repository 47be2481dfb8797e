from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from src.core.errors import ConflictError, NotFoundError
from src.core.repositories.base import Repository
from src.models.member import MemberRole, MemberStatus, WorkspaceMember

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class MemberRepository(Repository[WorkspaceMember]):
    """Durable store for workspace membership.

    Mutations commit before returning: the invite workflow hands the new
    member's public id to an external system, so the row must already be
    visible to other sessions.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=WorkspaceMember)

    def _active_select(self) -> Select[tuple[WorkspaceMember]]:
        return self._select().where(WorkspaceMember.deleted_at.is_(None))

    async def create_member(
        self,
        *,
        workspace_id: UUID,
        email: str,
        user_id: UUID | None,
        created_by: UUID,
        role: MemberRole = MemberRole.MEMBER,
        status: MemberStatus = MemberStatus.INVITED,
    ) -> WorkspaceMember:
        normalized = normalize_email(email)
        try:
            async with self.session.begin_nested():
                member = await self.create(
                    workspace_id=workspace_id,
                    email=normalized,
                    user_id=user_id,
                    created_by=created_by,
                    role=role,
                    status=status,
                )
        except IntegrityError as exc:
            raise ConflictError(
                f"User with email {normalized} is already a member of this workspace"
            ) from exc

        await self.session.commit()
        return member

    async def mark_deleted(
        self,
        member_id: UUID,
        *,
        deleted_by: UUID,
        deleted_at: datetime | None = None,
    ) -> bool:
        """Soft-delete the row if it is still active.

        Returns ``True`` only when this call performed the deletion, so
        concurrent removals of the same member see exactly one winner.
        """
        result = await self.session.execute(
            update(WorkspaceMember)
            .where(WorkspaceMember.id == member_id, WorkspaceMember.deleted_at.is_(None))
            .values(deleted_at=deleted_at or datetime.now(timezone.utc), deleted_by=deleted_by)
        )
        if result.rowcount != 1:
            return False

        await self.session.commit()
        return True

    async def soft_delete(
        self,
        member_id: UUID,
        *,
        deleted_by: UUID,
        deleted_at: datetime | None = None,
    ) -> WorkspaceMember:
        deleted = await self.mark_deleted(member_id, deleted_by=deleted_by, deleted_at=deleted_at)

        result = await self.session.execute(
            self._select()
            .where(WorkspaceMember.id == member_id)
            .execution_options(populate_existing=True)
        )
        member = result.scalar_one_or_none()
        if member is None:
            raise NotFoundError(f"Member with id {member_id} not found")

        if not deleted:
            logger.info("Member id=%s already soft-deleted, leaving it unchanged", member_id)
        return member

    async def get_by_public_id(self, public_id: str) -> WorkspaceMember | None:
        result = await self.session.execute(
            self._active_select().where(WorkspaceMember.public_id == public_id)
        )
        return result.scalar_one_or_none()

    async def get_by_email_in_workspace(self, workspace_id: UUID, email: str) -> WorkspaceMember | None:
        result = await self.session.execute(
            self._active_select().where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.email == normalize_email(email),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_user_in_workspace(self, workspace_id: UUID, user_id: UUID) -> WorkspaceMember | None:
        result = await self.session.execute(
            self._active_select().where(
                WorkspaceMember.workspace_id == workspace_id,
                WorkspaceMember.user_id == user_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_active(self, workspace_id: UUID) -> list[WorkspaceMember]:
        result = await self.session.execute(
            self._active_select()
            .where(WorkspaceMember.workspace_id == workspace_id)
            .order_by(WorkspaceMember.created_at)
        )
        return list(result.scalars().all())
