from __future__ import annotations

import json
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from src.api.main import app
from src.api.routes.members import get_membership_workflow
from src.core.auth import AuthContext, get_optional_auth_context
from src.core.db import get_db_session
from src.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidSeatCountError,
    NotFoundError,
    UnauthenticatedError,
)
from src.core.membership import MembershipWorkflow
from src.models.member import MemberRole, MemberStatus

WORKSPACE = "wspublicid01"
MEMBER = "mbpublicid01"


def _member(**overrides: object) -> SimpleNamespace:
    values = {
        "public_id": MEMBER,
        "email": "a@x.com",
        "role": MemberRole.MEMBER,
        "status": MemberStatus.INVITED,
        "user_id": None,
        "created_at": datetime(2026, 10, 18, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def auth_context() -> AuthContext:
    return AuthContext(user_id=uuid4(), subject="user_123", email="admin@x.com")


@pytest.fixture
def workflow() -> SimpleNamespace:
    return SimpleNamespace(
        invite_member=AsyncMock(return_value=_member()),
        remove_member=AsyncMock(return_value={"success": True}),
        list_members=AsyncMock(return_value=[]),
    )


@pytest.fixture
def client(auth_context: AuthContext, workflow: SimpleNamespace):
    async def _auth_override() -> AuthContext:
        return auth_context

    app.dependency_overrides[get_optional_auth_context] = _auth_override
    app.dependency_overrides[get_membership_workflow] = lambda: workflow
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def test_health_endpoint(client: TestClient) -> None:
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_invite_member_returns_created_member(
    client: TestClient,
    workflow: SimpleNamespace,
    auth_context: AuthContext,
) -> None:
    res = client.post(f"/api/v1/workspaces/{WORKSPACE}/members/invite", json={"email": "a@x.com"})

    assert res.status_code == 200
    body = res.json()
    assert body["public_id"] == MEMBER
    assert body["role"] == "member"
    assert body["status"] == "invited"
    assert body["user_id"] is None
    workflow.invite_member.assert_awaited_once_with(WORKSPACE, auth_context.user_id, "a@x.com")


def test_invite_member_rejects_malformed_email(client: TestClient, workflow: SimpleNamespace) -> None:
    res = client.post(f"/api/v1/workspaces/{WORKSPACE}/members/invite", json={"email": "not-an-email"})

    assert res.status_code == 422
    workflow.invite_member.assert_not_awaited()


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (UnauthenticatedError("User not authenticated"), 401),
        (ForbiddenError("You do not have access to this workspace"), 403),
        (NotFoundError("Workspace not found"), 404),
        (ConflictError("User with email a@x.com is already a member of this workspace"), 409),
        (InvalidSeatCountError("Seat count cannot drop below 1"), 422),
        (InternalError("Failed to secure a seat for the new member"), 500),
    ],
)
def test_invite_member_maps_workflow_errors(
    client: TestClient,
    workflow: SimpleNamespace,
    error: Exception,
    status_code: int,
) -> None:
    workflow.invite_member.side_effect = error

    res = client.post(f"/api/v1/workspaces/{WORKSPACE}/members/invite", json={"email": "a@x.com"})

    assert res.status_code == status_code
    assert res.json()["detail"] == error.message


def test_anonymous_caller_reaches_workflow_as_none(workflow: SimpleNamespace) -> None:
    async def _anonymous() -> None:
        return None

    workflow.remove_member.side_effect = UnauthenticatedError("User not authenticated")
    app.dependency_overrides[get_optional_auth_context] = _anonymous
    app.dependency_overrides[get_membership_workflow] = lambda: workflow
    try:
        with TestClient(app) as c:
            res = c.delete(f"/api/v1/workspaces/{WORKSPACE}/members/{MEMBER}")
    finally:
        app.dependency_overrides.clear()

    assert res.status_code == 401
    workflow.remove_member.assert_awaited_once_with(WORKSPACE, None, MEMBER)


def test_remove_member(client: TestClient, workflow: SimpleNamespace, auth_context: AuthContext) -> None:
    res = client.delete(f"/api/v1/workspaces/{WORKSPACE}/members/{MEMBER}")

    assert res.status_code == 200
    assert res.json() == {"success": True}
    workflow.remove_member.assert_awaited_once_with(WORKSPACE, auth_context.user_id, MEMBER)


def test_remove_member_not_found(client: TestClient, workflow: SimpleNamespace) -> None:
    workflow.remove_member.side_effect = NotFoundError(f"Member with public ID {MEMBER} not found")

    res = client.delete(f"/api/v1/workspaces/{WORKSPACE}/members/{MEMBER}")

    assert res.status_code == 404


def test_remove_member_rejects_short_public_id(client: TestClient, workflow: SimpleNamespace) -> None:
    res = client.delete(f"/api/v1/workspaces/{WORKSPACE}/members/short")

    assert res.status_code == 422
    workflow.remove_member.assert_not_awaited()


def test_list_members(client: TestClient, workflow: SimpleNamespace) -> None:
    linked_user = uuid4()
    workflow.list_members.return_value = [
        _member(public_id="adminpublic1", email="admin@x.com", role=MemberRole.ADMIN, status=MemberStatus.ACTIVE, user_id=linked_user),
        _member(),
    ]

    res = client.get(f"/api/v1/workspaces/{WORKSPACE}/members")

    assert res.status_code == 200
    body = res.json()
    assert [item["email"] for item in body] == ["admin@x.com", "a@x.com"]
    assert body[0]["role"] == "admin"
    assert body[0]["user_id"] == str(linked_user)


def test_get_membership_workflow_wires_billing_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.api.routes import members

    monkeypatch.setattr(members.settings, "deployment_env", "cloud")
    enforced = get_membership_workflow(session=Mock())

    monkeypatch.setattr(members.settings, "deployment_env", "self-hosted")
    relaxed = get_membership_workflow(session=Mock())

    assert isinstance(enforced, MembershipWorkflow)
    assert enforced.billing_enforced is True
    assert enforced.seat_accountant.billing_enforced is True
    assert relaxed.billing_enforced is False
    assert relaxed.seat_accountant.billing_enforced is False


class _FakeSubscriptionRepo:
    updated_with: dict = {}

    def __init__(self, session):  # noqa: ANN001
        self.session = session

    async def update_by_stripe_subscription_id(self, stripe_subscription_id: str, **values: object):
        if stripe_subscription_id != "sub_known":
            return None
        _FakeSubscriptionRepo.updated_with = {"id": stripe_subscription_id, **values}
        return SimpleNamespace(status=values.get("status"), seats=values.get("seats"))


@pytest.fixture
def webhook_client(monkeypatch: pytest.MonkeyPatch):
    from src.api.routes import webhooks

    fake_session = SimpleNamespace(commit=AsyncMock())

    async def _db_override():
        yield fake_session

    monkeypatch.setattr(webhooks.settings, "stripe_webhook_secret", "")
    monkeypatch.setattr(webhooks, "SubscriptionRepository", _FakeSubscriptionRepo)
    app.dependency_overrides[get_db_session] = _db_override
    with TestClient(app) as c:
        yield c, fake_session
    app.dependency_overrides.clear()


def _event(event_type: str, subscription: dict) -> bytes:
    return json.dumps({"type": event_type, "data": {"object": subscription}}).encode()


def test_stripe_webhook_syncs_subscription(webhook_client) -> None:  # noqa: ANN001
    client, session = webhook_client
    payload = _event(
        "customer.subscription.updated",
        {
            "id": "sub_known",
            "status": "past_due",
            "cancel_at_period_end": True,
            "items": {"data": [{"quantity": 6, "current_period_start": 1760745600, "current_period_end": 1763424000}]},
        },
    )

    res = client.post("/api/v1/webhooks/stripe", content=payload)

    assert res.status_code == 200
    assert res.json() == {
        "received": True,
        "event_type": "customer.subscription.updated",
        "subscription_id": "sub_known",
        "updated": True,
    }
    assert _FakeSubscriptionRepo.updated_with["seats"] == 6
    assert _FakeSubscriptionRepo.updated_with["cancel_at_period_end"] is True
    assert _FakeSubscriptionRepo.updated_with["period_start"] == datetime.fromtimestamp(1760745600, tz=timezone.utc)
    session.commit.assert_awaited_once()


def test_stripe_webhook_unknown_subscription(webhook_client) -> None:  # noqa: ANN001
    client, session = webhook_client

    res = client.post("/api/v1/webhooks/stripe", content=_event("customer.subscription.deleted", {"id": "sub_other"}))

    assert res.status_code == 200
    assert res.json()["updated"] is False
    session.commit.assert_not_awaited()


def test_stripe_webhook_ignores_other_events(webhook_client) -> None:  # noqa: ANN001
    client, _ = webhook_client

    res = client.post("/api/v1/webhooks/stripe", content=_event("invoice.paid", {"id": "in_1"}))

    assert res.status_code == 200
    assert res.json() == {
        "received": True,
        "event_type": "invoice.paid",
        "subscription_id": None,
        "updated": False,
    }


def test_stripe_webhook_requires_subscription_id(webhook_client) -> None:  # noqa: ANN001
    client, _ = webhook_client

    res = client.post("/api/v1/webhooks/stripe", content=_event("customer.subscription.created", {}))

    assert res.status_code == 400


def test_stripe_webhook_rejects_invalid_json(webhook_client) -> None:  # noqa: ANN001
    client, _ = webhook_client

    res = client.post("/api/v1/webhooks/stripe", content=b"{not json")

    assert res.status_code == 400


def test_verify_requires_signature_when_secret_set(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.api.routes import webhooks

    monkeypatch.setattr(webhooks.settings, "stripe_webhook_secret", "whsec_test")

    with pytest.raises(HTTPException) as exc:
        webhooks._verify_and_parse_event(b"{}", None)
    assert exc.value.status_code == 401


def test_verify_rejects_bad_signature(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.api.routes import webhooks

    def _bad_signature(**kwargs):  # noqa: ANN003
        raise ValueError("signature mismatch")

    monkeypatch.setattr(webhooks.settings, "stripe_webhook_secret", "whsec_test")
    monkeypatch.setattr(webhooks.stripe.Webhook, "construct_event", _bad_signature)

    with pytest.raises(HTTPException) as exc:
        webhooks._verify_and_parse_event(b"{}", "t=1,v1=abc")
    assert exc.value.status_code == 400


def test_verify_accepts_valid_signature(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.api.routes import webhooks

    monkeypatch.setattr(webhooks.settings, "stripe_webhook_secret", "whsec_test")
    monkeypatch.setattr(webhooks.stripe.Webhook, "construct_event", lambda **kwargs: {"type": "invoice.paid"})

    assert webhooks._verify_and_parse_event(b'{"type": "invoice.paid"}', "t=1,v1=abc") == {"type": "invoice.paid"}


def test_extract_subscription_updates_prefers_top_level_period() -> None:
    from src.api.routes import webhooks

    updates = webhooks._extract_subscription_updates(
        {
            "status": "trialing",
            "current_period_start": 1700000000,
            "current_period_end": 1702592000,
            "trial_start": 1700000000,
            "trial_end": None,
            "items": {"data": [{"quantity": 2, "current_period_start": 1, "current_period_end": 2}]},
        }
    )

    assert updates["status"] == "trialing"
    assert updates["seats"] == 2
    assert updates["period_start"] == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert updates["period_end"] == datetime.fromtimestamp(1702592000, tz=timezone.utc)
    assert updates["trial_start"] == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert updates["trial_end"] is None
    assert "cancel_at_period_end" not in updates


def test_extract_subscription_updates_without_items() -> None:
    from src.api.routes import webhooks

    updates = webhooks._extract_subscription_updates({"status": "canceled"})

    assert updates == {"trial_start": None, "trial_end": None, "status": "canceled"}


def test_lifespan_configures_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    from src.api import main

    calls: list[dict] = []
    monkeypatch.setattr(main.logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
    monkeypatch.setattr(main.settings, "log_level", "DEBUG")

    with TestClient(app) as c:
        assert c.get("/health").status_code == 200

    assert calls == [{"level": "DEBUG"}]
