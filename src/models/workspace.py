from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import PUBLIC_ID_LENGTH, TimestampedBase, generate_public_id


class Workspace(TimestampedBase):
    __tablename__ = "workspaces"

    public_id: Mapped[str] = mapped_column(
        String(PUBLIC_ID_LENGTH),
        unique=True,
        nullable=False,
        index=True,
        default=generate_public_id,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
