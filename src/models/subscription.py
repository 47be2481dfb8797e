from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import PUBLIC_ID_LENGTH, TimestampedBase

ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})


class Subscription(TimestampedBase):
    __tablename__ = "subscriptions"

    plan: Mapped[str] = mapped_column(String(255), nullable=False)
    reference_id: Mapped[str] = mapped_column(
        String(PUBLIC_ID_LENGTH),
        ForeignKey("workspaces.public_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    seats: Mapped[int | None] = mapped_column(nullable=True)
    unlimited_seats: Mapped[bool] = mapped_column(nullable=False, default=False)
    period_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    period_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end: Mapped[bool | None] = mapped_column(nullable=True)
    trial_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    trial_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
