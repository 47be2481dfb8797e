from __future__ import annotations

import asyncio
import logging
from typing import Protocol
from urllib.parse import urlencode

import requests

from src.core.config import settings

logger = logging.getLogger(__name__)


def build_invite_callback_url(member_public_id: str, base_path: str | None = None) -> str:
    path = base_path or settings.invite_callback_path
    query = urlencode({"type": "invite", "memberPublicId": member_public_id})
    return f"{path}?{query}"


class InvitationChannel(Protocol):
    async def send_invite_link(self, email: str, callback_url: str) -> bool: ...


class MagicLinkInvitationChannel:
    """Asks the auth provider to email a one-time sign-in link."""

    def __init__(self, endpoint_url: str | None = None, timeout_seconds: int | None = None) -> None:
        self.endpoint_url = endpoint_url or settings.auth_magic_link_url
        self.timeout_seconds = timeout_seconds or settings.auth_magic_link_timeout_seconds

    async def send_invite_link(self, email: str, callback_url: str) -> bool:
        def _post() -> bool:
            response = requests.post(
                self.endpoint_url,
                json={"email": email, "callbackURL": callback_url},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            body = response.json() if response.content else {}
            return bool(body.get("status", True))

        delivered = await asyncio.to_thread(_post)
        if not delivered:
            logger.warning("Auth provider declined magic link for email=%s", email)
        return delivered
