from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.repositories.base import Repository
from src.core.repositories.members import normalize_email
from src.models.user import User


class UserRepository(Repository[User]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=User)

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(self._select().where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def get_by_auth_subject(self, auth_subject: str) -> User | None:
        result = await self.session.execute(self._select().where(User.auth_subject == auth_subject))
        return result.scalar_one_or_none()
