from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.auth import AuthContext, get_optional_auth_context
from src.core.authorization import WorkspaceAuthorizer
from src.core.billing import SeatAccountant, StripeBillingClient
from src.core.config import settings
from src.core.db import get_db_session
from src.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidSeatCountError,
    MembershipError,
    NotFoundError,
    UnauthenticatedError,
)
from src.core.invitations import MagicLinkInvitationChannel
from src.core.membership import MembershipWorkflow
from src.core.reconciliation import ReconciliationRecorder
from src.core.repositories import (
    MemberRepository,
    SubscriptionRepository,
    UserRepository,
    WorkspaceRepository,
)
from src.core.subscriptions import is_billing_enforced
from src.models.member import WorkspaceMember
from src.schemas.member import MemberInviteRequest, MemberRemoveResponse, MemberResponse

router = APIRouter(prefix="/workspaces", tags=["workspaces"])

ERROR_STATUS_CODES: dict[type[MembershipError], int] = {
    UnauthenticatedError: status.HTTP_401_UNAUTHORIZED,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    InvalidSeatCountError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _to_http_exception(exc: MembershipError) -> HTTPException:
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=status_code, detail=exc.message)


def _requester_id(auth: AuthContext | None) -> UUID | None:
    return auth.user_id if auth is not None else None


def _member_response(member: WorkspaceMember) -> MemberResponse:
    return MemberResponse(
        public_id=member.public_id,
        email=member.email,
        role=getattr(member.role, "value", member.role),
        status=getattr(member.status, "value", member.status),
        user_id=str(member.user_id) if member.user_id else None,
        created_at=member.created_at,
    )


def get_membership_workflow(
    session: AsyncSession = Depends(get_db_session),
) -> MembershipWorkflow:
    billing_enforced = is_billing_enforced(settings)
    recorder = ReconciliationRecorder()
    members = MemberRepository(session)
    return MembershipWorkflow(
        workspaces=WorkspaceRepository(session),
        members=members,
        subscriptions=SubscriptionRepository(session),
        users=UserRepository(session),
        authorizer=WorkspaceAuthorizer(members),
        seat_accountant=SeatAccountant(
            StripeBillingClient(),
            billing_enforced=billing_enforced,
            recorder=recorder,
        ),
        invitation_channel=MagicLinkInvitationChannel(),
        billing_enforced=billing_enforced,
        recorder=recorder,
    )


@router.get("/{workspace_public_id}/members", response_model=list[MemberResponse])
async def list_members(
    workspace_public_id: str = Path(min_length=12),
    auth: AuthContext | None = Depends(get_optional_auth_context),
    workflow: MembershipWorkflow = Depends(get_membership_workflow),
) -> list[MemberResponse]:
    try:
        members = await workflow.list_members(workspace_public_id, _requester_id(auth))
    except MembershipError as exc:
        raise _to_http_exception(exc) from exc
    return [_member_response(member) for member in members]


@router.post("/{workspace_public_id}/members/invite", response_model=MemberResponse)
async def invite_member(
    payload: MemberInviteRequest,
    workspace_public_id: str = Path(min_length=12),
    auth: AuthContext | None = Depends(get_optional_auth_context),
    workflow: MembershipWorkflow = Depends(get_membership_workflow),
) -> MemberResponse:
    try:
        member = await workflow.invite_member(workspace_public_id, _requester_id(auth), payload.email)
    except MembershipError as exc:
        raise _to_http_exception(exc) from exc
    return _member_response(member)


@router.delete("/{workspace_public_id}/members/{member_public_id}", response_model=MemberRemoveResponse)
async def remove_member(
    workspace_public_id: str = Path(min_length=12),
    member_public_id: str = Path(min_length=12),
    auth: AuthContext | None = Depends(get_optional_auth_context),
    workflow: MembershipWorkflow = Depends(get_membership_workflow),
) -> MemberRemoveResponse:
    try:
        result = await workflow.remove_member(workspace_public_id, _requester_id(auth), member_public_id)
    except MembershipError as exc:
        raise _to_http_exception(exc) from exc
    return MemberRemoveResponse(success=result["success"])
