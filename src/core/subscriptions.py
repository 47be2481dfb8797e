from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Literal

from src.core.config import Settings
from src.models.subscription import ACTIVE_SUBSCRIPTION_STATUSES, Subscription

SubscriptionPlan = Literal["team", "pro"]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _created_at(subscription: Subscription) -> datetime:
    created_at = subscription.created_at
    if created_at is None:
        return _EPOCH
    if created_at.tzinfo is None:
        return created_at.replace(tzinfo=timezone.utc)
    return created_at


def get_active_subscriptions(subscriptions: Iterable[Subscription] | None) -> list[Subscription]:
    if not subscriptions:
        return []
    return [sub for sub in subscriptions if sub.status in ACTIVE_SUBSCRIPTION_STATUSES]


def get_subscription_by_plan(
    subscriptions: Sequence[Subscription] | None,
    plan: SubscriptionPlan,
) -> Subscription | None:
    """Return the active subscription on ``plan``.

    A workspace can hold more than one active row for the same plan while a
    plan change is settling; the most recently created one wins. ``sorted``
    is stable, so rows with equal timestamps keep their input order.
    """
    matches = [sub for sub in get_active_subscriptions(subscriptions) if sub.plan == plan]
    if not matches:
        return None
    return sorted(matches, key=_created_at, reverse=True)[0]


def has_active_subscription(
    subscriptions: Sequence[Subscription] | None,
    plan: SubscriptionPlan,
) -> bool:
    return get_subscription_by_plan(subscriptions, plan) is not None


def has_unlimited_seats(subscriptions: Iterable[Subscription] | None) -> bool:
    return any(sub.unlimited_seats for sub in get_active_subscriptions(subscriptions))


def is_billing_enforced(config: Settings) -> bool:
    return config.is_billing_enforced()
