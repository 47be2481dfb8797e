from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.repositories.base import Repository
from src.models.workspace import Workspace


class WorkspaceRepository(Repository[Workspace]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Workspace)

    async def get_by_public_id(self, public_id: str) -> Workspace | None:
        result = await self.session.execute(self._select().where(Workspace.public_id == public_id))
        return result.scalar_one_or_none()
