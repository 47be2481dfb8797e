from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Literal

import redis.asyncio as redis

from src.core.config import settings

logger = logging.getLogger(__name__)

DriftKind = Literal["seat_release_failed", "seat_overcount", "orphaned_invite"]


class ReconciliationRecorder:
    """Appends operator-visible drift events to a Redis stream.

    Events land here whenever billing or membership state is knowingly left
    inconsistent, so a reconciliation job or an operator can settle it later.
    """

    def __init__(self, redis_url: str | None = None, stream_name: str | None = None) -> None:
        self.redis_url = redis_url or settings.redis_url
        self.stream_name = stream_name or settings.reconciliation_stream_name

    async def flag(self, kind: DriftKind, **fields: object) -> bool:
        event = {
            "kind": kind,
            "flagged_at": datetime.now(timezone.utc).isoformat(),
        }
        event.update({key: "" if value is None else str(value) for key, value in fields.items()})

        redis_client = None
        try:
            redis_client = redis.from_url(self.redis_url, decode_responses=True)
            await redis_client.xadd(
                self.stream_name,
                event,
                maxlen=settings.reconciliation_stream_maxlen,
                approximate=True,
            )
        except Exception:
            logger.exception("Failed to record reconciliation event kind=%s fields=%s", kind, event)
            return False
        finally:
            if redis_client is not None:
                await redis_client.aclose()

        logger.info("Recorded reconciliation event kind=%s stream=%s", kind, self.stream_name)
        return True
