from __future__ import annotations

from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from src.models.base import TimestampedBase

ModelT = TypeVar("ModelT", bound=TimestampedBase)


class Repository(Generic[ModelT]):
    def __init__(self, session: AsyncSession, model: type[ModelT]) -> None:
        self.session = session
        self.model = model

    def _select(self) -> Select[tuple[ModelT]]:
        return select(self.model)

    async def create(self, **values: object) -> ModelT:
        instance = self.model(**values)
        self.session.add(instance)
        await self.session.flush()
        await self.session.refresh(instance)
        return instance

    async def get(self, entity_id: UUID) -> ModelT | None:
        result = await self.session.execute(self._select().where(self.model.id == entity_id))
        return result.scalar_one_or_none()

    async def update(self, entity_id: UUID, **values: object) -> ModelT | None:
        instance = await self.get(entity_id)
        if instance is None:
            return None

        for field, value in values.items():
            if field in {"id", "created_at"}:
                continue
            setattr(instance, field, value)

        await self.session.flush()
        await self.session.refresh(instance)
        return instance
