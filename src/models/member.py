from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Enum, ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from src.models.base import PUBLIC_ID_LENGTH, TimestampedBase, generate_public_id


class MemberRole(str, enum.Enum):
    ADMIN = "admin"
    MEMBER = "member"


class MemberStatus(str, enum.Enum):
    INVITED = "invited"
    ACTIVE = "active"


class WorkspaceMember(TimestampedBase):
    __tablename__ = "workspace_members"
    __table_args__ = (
        # Soft-deleted rows do not count towards the one-member-per-email rule.
        Index(
            "uq_workspace_members_workspace_email_active",
            "workspace_id",
            "email",
            unique=True,
            postgresql_where=text("deleted_at IS NULL"),
            sqlite_where=text("deleted_at IS NULL"),
        ),
    )

    public_id: Mapped[str] = mapped_column(
        String(PUBLIC_ID_LENGTH),
        unique=True,
        nullable=False,
        index=True,
        default=generate_public_id,
    )
    workspace_id: Mapped[UUID] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    user_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    role: Mapped[MemberRole] = mapped_column(
        Enum(MemberRole, name="member_role", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
        default=MemberRole.MEMBER,
    )
    status: Mapped[MemberStatus] = mapped_column(
        Enum(MemberStatus, name="member_status", values_callable=lambda e: [x.value for x in e]),
        nullable=False,
        default=MemberStatus.INVITED,
    )
    created_by: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
