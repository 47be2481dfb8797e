from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

import stripe

from src.core.config import settings
from src.core.errors import BillingProviderError, InvalidSeatCountError, SeatAdjustmentError
from src.core.reconciliation import ReconciliationRecorder
from src.core.subscriptions import has_unlimited_seats
from src.models.subscription import Subscription

logger = logging.getLogger(__name__)

MIN_SEATS = 1


@dataclass(slots=True)
class SeatQuantity:
    item_id: str
    quantity: int


class BillingClient(Protocol):
    async def retrieve_subscription_seats(self, external_subscription_id: str) -> SeatQuantity: ...

    async def update_subscription_seats(
        self,
        external_subscription_id: str,
        item_id: str,
        quantity: int,
    ) -> Any: ...


class StripeBillingClient:
    def __init__(self, secret_key: str | None = None, api_version: str | None = None) -> None:
        self.secret_key = secret_key if secret_key is not None else settings.stripe_secret_key
        self.api_version = api_version or settings.stripe_api_version

    def _request_options(self) -> dict[str, str]:
        if not self.secret_key:
            raise BillingProviderError("STRIPE_SECRET_KEY is not configured")
        return {"api_key": self.secret_key, "stripe_version": self.api_version}

    def _retrieve(self, external_subscription_id: str) -> SeatQuantity:
        subscription = stripe.Subscription.retrieve(
            external_subscription_id,
            expand=["items"],
            **self._request_options(),
        )
        items = (subscription.get("items") or {}).get("data") or []
        if not items:
            raise BillingProviderError(
                f"No subscription items found for subscription {external_subscription_id}"
            )

        item = items[0]
        quantity = item.get("quantity")
        return SeatQuantity(item_id=item["id"], quantity=1 if quantity is None else int(quantity))

    def _update(self, external_subscription_id: str, item_id: str, quantity: int) -> Any:
        return stripe.Subscription.modify(
            external_subscription_id,
            items=[{"id": item_id, "quantity": quantity}],
            proration_behavior="always_invoice",
            **self._request_options(),
        )

    async def retrieve_subscription_seats(self, external_subscription_id: str) -> SeatQuantity:
        try:
            return await asyncio.to_thread(self._retrieve, external_subscription_id)
        except stripe.StripeError as exc:
            raise BillingProviderError(f"Stripe retrieve failed: {exc}") from exc

    async def update_subscription_seats(
        self,
        external_subscription_id: str,
        item_id: str,
        quantity: int,
    ) -> Any:
        try:
            return await asyncio.to_thread(self._update, external_subscription_id, item_id, quantity)
        except stripe.StripeError as exc:
            raise BillingProviderError(f"Stripe update failed: {exc}") from exc


class SeatAccountant:
    """Turns a membership-count change into at most one seat-quantity change.

    Adding and releasing seats fail differently on purpose: a seat that could
    not be secured blocks the invite, while a seat that could not be released
    is only logged and flagged because the member is already gone.
    """

    def __init__(
        self,
        billing_client: BillingClient,
        *,
        billing_enforced: bool,
        recorder: ReconciliationRecorder | None = None,
    ) -> None:
        self.billing_client = billing_client
        self.billing_enforced = billing_enforced
        self.recorder = recorder

    def _should_skip(
        self,
        subscription: Subscription | None,
        subscriptions: Sequence[Subscription] | None,
    ) -> bool:
        if not self.billing_enforced or subscription is None:
            return True
        if has_unlimited_seats(subscriptions):
            return True
        if not subscription.stripe_subscription_id:
            logger.warning(
                "Subscription id=%s for workspace=%s has no billing id, skipping seat change",
                subscription.id,
                subscription.reference_id,
            )
            return True
        return False

    async def adjust_seats(
        self,
        subscription: Subscription | None,
        delta: int,
        *,
        subscriptions: Sequence[Subscription] | None,
    ) -> Any | None:
        if self._should_skip(subscription, subscriptions):
            return None

        external_id = subscription.stripe_subscription_id
        current = await self.billing_client.retrieve_subscription_seats(external_id)
        new_quantity = current.quantity + delta
        if new_quantity < MIN_SEATS:
            raise InvalidSeatCountError(
                f"Cannot reduce seats below {MIN_SEATS}. "
                f"Current: {current.quantity}, requested change: {delta}"
            )

        updated = await self.billing_client.update_subscription_seats(
            external_id,
            current.item_id,
            new_quantity,
        )
        logger.info(
            "Seat quantity for subscription=%s changed %s -> %s",
            external_id,
            current.quantity,
            new_quantity,
        )
        return updated

    async def add_seat(
        self,
        subscription: Subscription | None,
        *,
        subscriptions: Sequence[Subscription] | None,
    ) -> Any | None:
        try:
            return await self.adjust_seats(subscription, 1, subscriptions=subscriptions)
        except Exception as exc:
            logger.error("Failed to add a seat to subscription=%s: %s", _external_id(subscription), exc)
            raise SeatAdjustmentError("Failed to secure a seat for the new member") from exc

    async def release_seat(
        self,
        subscription: Subscription | None,
        *,
        subscriptions: Sequence[Subscription] | None,
    ) -> Any | None:
        try:
            return await self.adjust_seats(subscription, -1, subscriptions=subscriptions)
        except Exception as exc:
            logger.exception("Failed to release a seat on subscription=%s", _external_id(subscription))
            if self.recorder is not None:
                await self.recorder.flag(
                    "seat_release_failed",
                    workspace_public_id=subscription.reference_id if subscription else None,
                    stripe_subscription_id=_external_id(subscription),
                    delta=-1,
                    error=exc,
                )
            return None


def _external_id(subscription: Subscription | None) -> str | None:
    return subscription.stripe_subscription_id if subscription is not None else None
