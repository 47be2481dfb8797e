from __future__ import annotations

from pydantic import BaseModel


class StripeWebhookResponse(BaseModel):
    received: bool
    event_type: str
    subscription_id: str | None = None
    updated: bool
