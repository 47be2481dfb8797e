from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.db import get_db_session
from src.core.repositories.subscriptions import SubscriptionRepository
from src.schemas.billing import StripeWebhookResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SUBSCRIPTION_EVENTS = {
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
}


def _timestamp(value: object) -> datetime | None:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _extract_subscription_updates(subscription: dict) -> dict[str, object]:
    items = (subscription.get("items") or {}).get("data") or []
    first_item = items[0] if items else {}

    updates: dict[str, object] = {
        "trial_start": _timestamp(subscription.get("trial_start")),
        "trial_end": _timestamp(subscription.get("trial_end")),
    }
    if subscription.get("status"):
        updates["status"] = subscription["status"]
    if subscription.get("cancel_at_period_end") is not None:
        updates["cancel_at_period_end"] = bool(subscription["cancel_at_period_end"])
    if first_item.get("quantity") is not None:
        updates["seats"] = int(first_item["quantity"])

    # Newer API versions report the billing period per item.
    period_start = subscription.get("current_period_start") or first_item.get("current_period_start")
    period_end = subscription.get("current_period_end") or first_item.get("current_period_end")
    if period_start:
        updates["period_start"] = _timestamp(period_start)
    if period_end:
        updates["period_end"] = _timestamp(period_end)

    return updates


def _verify_and_parse_event(raw_body: bytes, stripe_signature: str | None) -> dict:
    if settings.stripe_webhook_secret and not stripe_signature:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Stripe signature",
        )

    if stripe_signature and settings.stripe_webhook_secret:
        try:
            stripe.Webhook.construct_event(
                payload=raw_body,
                sig_header=stripe_signature,
                secret=settings.stripe_webhook_secret,
            )
        except Exception as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid Stripe signature: {exc}",
            ) from exc

    try:
        return json.loads(raw_body.decode("utf-8"))
    except json.JSONDecodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid webhook payload",
        ) from exc


@router.post("/stripe", response_model=StripeWebhookResponse)
async def stripe_webhook(
    request: Request,
    session: AsyncSession = Depends(get_db_session),
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> StripeWebhookResponse:
    raw_body = await request.body()
    payload = _verify_and_parse_event(raw_body, stripe_signature)
    event_type = payload.get("type", "unknown")

    if event_type not in SUBSCRIPTION_EVENTS:
        return StripeWebhookResponse(received=True, event_type=event_type, updated=False)

    subscription = (payload.get("data") or {}).get("object") or {}
    stripe_subscription_id = subscription.get("id")
    if not stripe_subscription_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Webhook payload missing subscription id",
        )

    repository = SubscriptionRepository(session)
    updated = await repository.update_by_stripe_subscription_id(
        stripe_subscription_id,
        **_extract_subscription_updates(subscription),
    )
    if updated is None:
        logger.warning("Stripe event=%s for unknown subscription=%s", event_type, stripe_subscription_id)
        return StripeWebhookResponse(
            received=True,
            event_type=event_type,
            subscription_id=stripe_subscription_id,
            updated=False,
        )

    await session.commit()
    logger.info(
        "Synced subscription=%s from event=%s status=%s seats=%s",
        stripe_subscription_id,
        event_type,
        updated.status,
        updated.seats,
    )
    return StripeWebhookResponse(
        received=True,
        event_type=event_type,
        subscription_id=stripe_subscription_id,
        updated=True,
    )
