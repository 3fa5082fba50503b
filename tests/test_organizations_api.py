from __future__ import annotations

import uuid

from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.platform.organizations.models import Invitation, OrganizationMember
from tests.conftest import Tenant, add_member, auth_headers, create_user


def test_create_organization_makes_owner_and_trial(client: TestClient, db_session: Session) -> None:
    user = create_user(db_session, "founder@example.com")

    response = client.post("/organizations", json={"name": "My Salon!"}, headers=auth_headers(user))
    assert response.status_code == 201
    body = response.json()
    assert body["slug"].startswith("my-salon-")
    assert body["my_role"] == "OWNER"
    assert body["subscription"]["plan"] == "TRIAL"
    assert body["subscription"]["max_businesses"] == 1
    assert body["counts"] == {"members": 1, "businesses": 0}

    listing = client.get("/organizations", headers=auth_headers(user))
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()] == [body["id"]]
    assert listing.json()[0]["member_count"] == 1

    assert any(item.get("event_type") == "organization.created" for item in events.published_events)


def test_non_member_cannot_read_organization(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    outsider = create_user(db_session, "outsider@example.com")

    response = client.get(f"/organizations/{tenant.organization.id}", headers=auth_headers(outsider))
    assert response.status_code == 403
    assert response.json()["errorCode"] == "RESOURCE_ACCESS_DENIED"


def test_update_requires_settings_permission(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    viewer = create_user(db_session, "viewer@example.com")
    add_member(db_session, tenant.organization.id, viewer, role="VIEWER")

    denied = client.patch(
        f"/organizations/{tenant.organization.id}", json={"name": "Renamed"}, headers=auth_headers(viewer)
    )
    assert denied.status_code == 403

    allowed = client.patch(
        f"/organizations/{tenant.organization.id}",
        json={"name": "Renamed", "slug": "renamed-org"},
        headers=tenant.headers,
    )
    assert allowed.status_code == 200
    assert allowed.json()["name"] == "Renamed"
    assert allowed.json()["slug"] == "renamed-org"


def test_delete_blocked_while_businesses_exist(client: TestClient, tenant: Tenant) -> None:
    response = client.delete(f"/organizations/{tenant.organization.id}", headers=tenant.headers)
    assert response.status_code == 422
    assert response.json()["errorCode"] == "BUSINESS_OPERATION_NOT_ALLOWED"


def test_invite_and_accept_flow(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    invitee = create_user(db_session, "invitee@example.com")

    invite = client.post(
        f"/organizations/{tenant.organization.id}/members/invite",
        json={"email": "invitee@example.com", "role": "MANAGER"},
        headers=tenant.headers,
    )
    assert invite.status_code == 201
    assert invite.json()["role"] == "MANAGER"

    again = client.post(
        f"/organizations/{tenant.organization.id}/members/invite",
        json={"email": "invitee@example.com"},
        headers=tenant.headers,
    )
    assert again.status_code == 409

    pending = client.get(f"/organizations/{tenant.organization.id}/invitations", headers=tenant.headers)
    assert len(pending.json()) == 1

    token = db_session.scalar(select(Invitation.token).where(Invitation.email == "invitee@example.com"))
    wrong_user = create_user(db_session, "other@example.com")
    stolen = client.post("/organizations/invitations/accept", json={"token": token}, headers=auth_headers(wrong_user))
    assert stolen.status_code == 403

    accepted = client.post("/organizations/invitations/accept", json={"token": token}, headers=auth_headers(invitee))
    assert accepted.status_code == 200
    assert accepted.json()["role"] == "MANAGER"

    twice = client.post("/organizations/invitations/accept", json={"token": token}, headers=auth_headers(invitee))
    assert twice.status_code == 422

    members = client.get(f"/organizations/{tenant.organization.id}/members", headers=auth_headers(invitee))
    assert [member["role"] for member in members.json()] == ["OWNER", "MANAGER"]


def test_admin_cannot_invite_admin(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    admin = create_user(db_session, "orgadmin@example.com")
    add_member(db_session, tenant.organization.id, admin, role="ADMIN")

    response = client.post(
        f"/organizations/{tenant.organization.id}/members/invite",
        json={"email": "peer@example.com", "role": "ADMIN"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 403
    assert response.json()["errorCode"] == "AUTH_INSUFFICIENT_PERMISSIONS"


def test_member_limit_is_enforced(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    for index in range(2):
        add_member(db_session, tenant.organization.id, create_user(db_session, f"m{index}@example.com"))

    response = client.post(
        f"/organizations/{tenant.organization.id}/members/invite",
        json={"email": "fourth@example.com"},
        headers=tenant.headers,
    )
    assert response.status_code == 429
    assert response.json()["errorCode"] == "BUSINESS_QUOTA_EXCEEDED"


def test_role_changes_follow_hierarchy(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    manager = create_user(db_session, "manager@example.com")
    member = add_member(db_session, tenant.organization.id, manager, role="MANAGER")
    owner_member = db_session.scalar(
        select(OrganizationMember).where(OrganizationMember.user_id == tenant.owner.id)
    )

    promoted = client.patch(
        f"/organizations/{tenant.organization.id}/members/{member.id}/role",
        json={"role": "ADMIN"},
        headers=tenant.headers,
    )
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "ADMIN"

    to_owner = client.patch(
        f"/organizations/{tenant.organization.id}/members/{member.id}/role",
        json={"role": "OWNER"},
        headers=tenant.headers,
    )
    assert to_owner.status_code == 403

    own = client.patch(
        f"/organizations/{tenant.organization.id}/members/{owner_member.id}/role",
        json={"role": "MEMBER"},
        headers=tenant.headers,
    )
    assert own.status_code == 422


def test_remove_and_leave(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    first = create_user(db_session, "first@example.com")
    second = create_user(db_session, "second@example.com")
    first_member = add_member(db_session, tenant.organization.id, first)
    add_member(db_session, tenant.organization.id, second)

    removed = client.delete(
        f"/organizations/{tenant.organization.id}/members/{first_member.id}", headers=tenant.headers
    )
    assert removed.status_code == 200

    left = client.post(f"/organizations/{tenant.organization.id}/leave", headers=auth_headers(second))
    assert left.status_code == 200

    owner_leave = client.post(f"/organizations/{tenant.organization.id}/leave", headers=tenant.headers)
    assert owner_leave.status_code == 422

    members = client.get(f"/organizations/{tenant.organization.id}/members", headers=tenant.headers)
    assert len(members.json()) == 1


def test_permission_check(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    viewer = create_user(db_session, "viewer@example.com")
    add_member(db_session, tenant.organization.id, viewer, role="VIEWER")

    allowed = client.get(
        f"/organizations/{tenant.organization.id}/permissions/check",
        params={"permission": "inquiry:view"},
        headers=auth_headers(viewer),
    )
    assert allowed.json() == {"permission": "inquiry:view", "allowed": True, "role": "VIEWER"}

    denied = client.get(
        f"/organizations/{tenant.organization.id}/permissions/check",
        params={"permission": "inquiry:delete"},
        headers=auth_headers(viewer),
    )
    assert denied.json()["allowed"] is False

    outsider = client.get(
        f"/organizations/{uuid.uuid4()}/permissions/check",
        params={"permission": "inquiry:view"},
        headers=auth_headers(viewer),
    )
    assert outsider.json() == {"permission": "inquiry:view", "allowed": False, "role": None}
