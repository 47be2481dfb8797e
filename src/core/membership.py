from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from src.core.authorization import WorkspaceAuthorizer
from src.core.billing import SeatAccountant
from src.core.errors import (
    ConflictError,
    InternalError,
    InvitationDeliveryError,
    NotFoundError,
    SeatAdjustmentError,
    UnauthenticatedError,
)
from src.core.invitations import InvitationChannel, build_invite_callback_url
from src.core.reconciliation import ReconciliationRecorder
from src.core.repositories.members import MemberRepository, normalize_email
from src.core.saga import Saga, SagaStep
from src.core.subscriptions import get_subscription_by_plan, has_active_subscription, has_unlimited_seats
from src.models.member import MemberRole, MemberStatus, WorkspaceMember
from src.models.subscription import Subscription
from src.models.user import User
from src.models.workspace import Workspace

logger = logging.getLogger(__name__)


class WorkspaceLookup(Protocol):
    async def get_by_public_id(self, public_id: str) -> Workspace | None: ...


class SubscriptionLookup(Protocol):
    async def list_by_reference_id(self, reference_id: str) -> list[Subscription]: ...


class UserLookup(Protocol):
    async def get_by_email(self, email: str) -> User | None: ...


class MembershipWorkflow:
    """Invites and removes workspace members across store, billing and auth.

    The workflow holds no state of its own. Invites run as a saga: the seat
    is secured first, then the member row is written, then the sign-in link
    is sent; a failure rolls back the completed steps in reverse. Removal
    never waits on billing: the member is soft-deleted first and a failed
    seat release is only logged and flagged.
    """

    def __init__(
        self,
        *,
        workspaces: WorkspaceLookup,
        members: MemberRepository,
        subscriptions: SubscriptionLookup,
        users: UserLookup,
        authorizer: WorkspaceAuthorizer,
        seat_accountant: SeatAccountant,
        invitation_channel: InvitationChannel,
        billing_enforced: bool,
        recorder: ReconciliationRecorder | None = None,
    ) -> None:
        self.workspaces = workspaces
        self.members = members
        self.subscriptions = subscriptions
        self.users = users
        self.authorizer = authorizer
        self.seat_accountant = seat_accountant
        self.invitation_channel = invitation_channel
        self.billing_enforced = billing_enforced
        self.recorder = recorder

    async def _resolve_workspace(
        self,
        workspace_public_id: str,
        requester_user_id: UUID | None,
        min_role: MemberRole,
    ) -> Workspace:
        if requester_user_id is None:
            raise UnauthenticatedError("User not authenticated")

        workspace = await self.workspaces.get_by_public_id(workspace_public_id)
        if workspace is None:
            raise NotFoundError(f"Workspace with public ID {workspace_public_id} not found")

        await self.authorizer.assert_role(requester_user_id, workspace.id, min_role)
        return workspace

    async def invite_member(
        self,
        workspace_public_id: str,
        requester_user_id: UUID | None,
        email: str,
    ) -> WorkspaceMember:
        workspace = await self._resolve_workspace(workspace_public_id, requester_user_id, MemberRole.ADMIN)
        email = normalize_email(email)

        subscriptions: list[Subscription] = []
        team_subscription: Subscription | None = None
        if self.billing_enforced:
            subscriptions = await self.subscriptions.list_by_reference_id(workspace.public_id)
            team_subscription = get_subscription_by_plan(subscriptions, "team")
            if team_subscription is None and not has_active_subscription(subscriptions, "pro"):
                raise NotFoundError(
                    f"Workspace with public ID {workspace.public_id} does not have an active subscription"
                )

        if await self.members.get_by_email_in_workspace(workspace.id, email) is not None:
            raise ConflictError(f"User with email {email} is already a member of this workspace")

        saga = Saga(name="invite_member", on_compensation_failure=self._on_compensation_failure)

        if team_subscription is not None and not has_unlimited_seats(subscriptions):

            async def reserve_seat() -> Any:
                return await self.seat_accountant.add_seat(team_subscription, subscriptions=subscriptions)

            async def flag_overcount(updated: Any) -> None:
                # The charge stays in place; reversing it synchronously is riskier than a one-seat overcount.
                if updated is None or self.recorder is None:
                    return
                await self.recorder.flag(
                    "seat_overcount",
                    workspace_public_id=workspace.public_id,
                    stripe_subscription_id=team_subscription.stripe_subscription_id,
                    email=email,
                    delta=1,
                )

            saga.add_step("reserve_seat", reserve_seat, flag_overcount)

        async def create_member() -> WorkspaceMember:
            existing_user = await self.users.get_by_email(email)
            return await self.members.create_member(
                workspace_id=workspace.id,
                email=email,
                user_id=existing_user.id if existing_user else None,
                created_by=requester_user_id,
                role=MemberRole.MEMBER,
                status=MemberStatus.INVITED,
            )

        async def undo_create_member(member: WorkspaceMember) -> None:
            await self.members.soft_delete(
                member.id,
                deleted_by=requester_user_id,
                deleted_at=datetime.now(timezone.utc),
            )

        async def send_invite_link() -> bool:
            member: WorkspaceMember = saga.results["create_member"]
            callback_url = build_invite_callback_url(member.public_id)
            try:
                delivered = await self.invitation_channel.send_invite_link(email, callback_url)
            except Exception as exc:
                logger.exception("Magic link transport failed for email=%s callback=%s", email, callback_url)
                raise InvitationDeliveryError(f"Magic link transport failed: {exc}") from exc

            if not delivered:
                logger.error("Failed to send magic link invitation email=%s callback=%s", email, callback_url)
                raise InvitationDeliveryError("Auth provider did not deliver the magic link")
            return delivered

        saga.add_step("create_member", create_member, undo_create_member)
        saga.add_step("send_invite_link", send_invite_link)

        try:
            results = await saga.run()
        except SeatAdjustmentError as exc:
            raise InternalError("Failed to secure a seat for the new member") from exc
        except InvitationDeliveryError as exc:
            raise InternalError(
                f"Failed to send magic link invitation to user with email {email}"
            ) from exc
        except SQLAlchemyError as exc:
            raise InternalError(f"Unable to invite user with email {email}") from exc

        member: WorkspaceMember = results["create_member"]
        logger.info("Invited email=%s to workspace=%s member=%s", email, workspace.public_id, member.public_id)
        return member

    async def remove_member(
        self,
        workspace_public_id: str,
        requester_user_id: UUID | None,
        member_public_id: str,
    ) -> dict[str, bool]:
        workspace = await self._resolve_workspace(workspace_public_id, requester_user_id, MemberRole.ADMIN)

        member = await self.members.get_by_public_id(member_public_id)
        if member is None or member.workspace_id != workspace.id:
            raise NotFoundError(f"Member with public ID {member_public_id} not found")

        try:
            deleted = await self.members.mark_deleted(
                member.id,
                deleted_by=requester_user_id,
                deleted_at=datetime.now(timezone.utc),
            )
        except SQLAlchemyError as exc:
            raise InternalError(f"Failed to delete member with public ID {member_public_id}") from exc

        if not deleted:
            # A concurrent removal won; it owns the seat release.
            logger.info("Member=%s was already removed from workspace=%s", member_public_id, workspace.public_id)
            return {"success": True}

        if self.billing_enforced:
            await self._release_seat(workspace)

        logger.info("Removed member=%s from workspace=%s", member_public_id, workspace.public_id)
        return {"success": True}

    async def list_members(
        self,
        workspace_public_id: str,
        requester_user_id: UUID | None,
    ) -> list[WorkspaceMember]:
        workspace = await self._resolve_workspace(workspace_public_id, requester_user_id, MemberRole.MEMBER)
        return await self.members.list_active(workspace.id)

    async def _release_seat(self, workspace: Workspace) -> None:
        try:
            subscriptions = await self.subscriptions.list_by_reference_id(workspace.public_id)
        except SQLAlchemyError:
            logger.exception("Could not load subscriptions for workspace=%s after removal", workspace.public_id)
            return

        team_subscription = get_subscription_by_plan(subscriptions, "team")
        if team_subscription is None or has_unlimited_seats(subscriptions):
            return

        await self.seat_accountant.release_seat(team_subscription, subscriptions=subscriptions)

    async def _on_compensation_failure(self, step: SagaStep, result: Any, exc: Exception) -> None:
        if step.name != "create_member":
            return

        logger.error(
            "Invite rollback failed: member=%s email=%s is left invited with no delivered link: %s",
            result.public_id,
            result.email,
            exc,
        )
        if self.recorder is not None:
            await self.recorder.flag(
                "orphaned_invite",
                member_public_id=result.public_id,
                workspace_id=result.workspace_id,
                email=result.email,
                error=exc,
            )
