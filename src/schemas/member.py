from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class MemberInviteRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class MemberResponse(BaseModel):
    public_id: str
    email: str
    role: str
    status: str
    user_id: str | None = None
    created_at: datetime | None = None


class MemberRemoveResponse(BaseModel):
    success: bool
