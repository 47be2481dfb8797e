from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.repositories.base import Repository
from src.models.subscription import Subscription


class SubscriptionRepository(Repository[Subscription]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session=session, model=Subscription)

    async def list_by_reference_id(self, reference_id: str) -> list[Subscription]:
        result = await self.session.execute(
            self._select()
            .where(Subscription.reference_id == reference_id)
            .order_by(Subscription.created_at, Subscription.id)
        )
        return list(result.scalars().all())

    async def get_by_stripe_subscription_id(self, stripe_subscription_id: str) -> Subscription | None:
        result = await self.session.execute(
            self._select().where(Subscription.stripe_subscription_id == stripe_subscription_id)
        )
        return result.scalars().first()

    async def update_by_stripe_subscription_id(
        self,
        stripe_subscription_id: str,
        **values: object,
    ) -> Subscription | None:
        subscription = await self.get_by_stripe_subscription_id(stripe_subscription_id)
        if subscription is None:
            return None

        values.setdefault("updated_at", datetime.now(timezone.utc))
        return await self.update(subscription.id, **values)
