from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inquaire import events
from tests.conftest import Tenant, add_member, auth_headers, create_inquiry, create_tenant, create_user


def test_create_business_reports_counts(client: TestClient, tenant: Tenant) -> None:
    response = client.post(
        "/businesses",
        json={"organization_id": str(tenant.organization.id), "name": "Acme Skin", "industry_type": "DERMATOLOGY"},
        headers=tenant.headers,
    )
    assert response.status_code == 201
    body = response.json()
    assert body["industry_type"] == "DERMATOLOGY"
    assert body["_count"] == {"channels": 0, "customers": 0, "inquiries": 0}
    assert any(item.get("event_type") == "business.created" for item in events.published_events)

    existing = client.get(f"/businesses/{tenant.business.id}", headers=tenant.headers)
    assert existing.json()["_count"] == {"channels": 1, "customers": 1, "inquiries": 0}


def test_business_quota_is_enforced(client: TestClient, db_session: Session) -> None:
    tenant = create_tenant(db_session, max_businesses=1)

    response = client.post(
        "/businesses",
        json={"organization_id": str(tenant.organization.id), "name": "Second"},
        headers=tenant.headers,
    )
    assert response.status_code == 429
    assert response.json()["context"] == {"maxBusinesses": 1, "currentBusinesses": 1}


def test_member_role_cannot_create_business(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    member = create_user(db_session, "member@example.com")
    add_member(db_session, tenant.organization.id, member)

    response = client.post(
        "/businesses",
        json={"organization_id": str(tenant.organization.id), "name": "Nope"},
        headers=auth_headers(member),
    )
    assert response.status_code == 403
    assert response.json()["errorCode"] == "AUTH_INSUFFICIENT_PERMISSIONS"


def test_list_is_scoped_to_memberships(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    other = create_tenant(db_session, "other-owner@example.com")

    mine = client.get("/businesses", headers=tenant.headers)
    assert [item["id"] for item in mine.json()] == [str(tenant.business.id)]

    foreign = client.get("/businesses", params={"organization_id": str(other.organization.id)}, headers=tenant.headers)
    assert foreign.status_code == 403

    detail = client.get(f"/businesses/{other.business.id}", headers=tenant.headers)
    assert detail.status_code == 403
    assert detail.json()["errorCode"] == "RESOURCE_ACCESS_DENIED"


def test_update_business(client: TestClient, tenant: Tenant) -> None:
    response = client.patch(
        f"/businesses/{tenant.business.id}",
        json={"name": "Acme Dental Seoul", "phone": "02-123-4567"},
        headers=tenant.headers,
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Acme Dental Seoul"
    assert response.json()["phone"] == "02-123-4567"


def test_delete_blocked_by_active_channels(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    blocked = client.delete(f"/businesses/{tenant.business.id}", headers=tenant.headers)
    assert blocked.status_code == 422
    assert blocked.json()["context"]["channelCount"] == 1

    created = client.post(
        "/businesses",
        json={"organization_id": str(tenant.organization.id), "name": "Empty"},
        headers=tenant.headers,
    ).json()
    deleted = client.delete(f"/businesses/{created['id']}", headers=tenant.headers)
    assert deleted.status_code == 200
    assert client.get(f"/businesses/{created['id']}", headers=tenant.headers).status_code == 403


def test_dashboard_summarizes_activity(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    create_inquiry(db_session, tenant, sentiment="positive")
    create_inquiry(db_session, tenant, "Is parking available?", status="COMPLETED", sentiment="neutral")

    response = client.get(f"/businesses/{tenant.business.id}/dashboard", headers=tenant.headers)
    assert response.status_code == 200
    body = response.json()
    assert body["inquiries"]["today"] == 2
    assert body["inquiries"]["last_30_days"] == 2
    assert body["inquiries"]["by_status"] == {"NEW": 1, "COMPLETED": 1}
    assert body["inquiries"]["by_sentiment"] == {"positive": 1, "neutral": 1}
    assert body["customers"] == {"total": 1, "new_last_7_days": 1}
    assert body["top_channels"][0]["inquiry_count"] == 2
