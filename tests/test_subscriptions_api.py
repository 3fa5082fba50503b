from __future__ import annotations

from datetime import datetime, timezone

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.subscriptions.service import add_months
from tests.conftest import Tenant, auth_headers, create_tenant, create_user


def _subscribe(client: TestClient, tenant: Tenant, **overrides: object) -> dict:
    payload = {"business_id": str(tenant.business.id), "plan": "BASIC", "monthly_limit": 2}
    payload.update(overrides)
    response = client.post("/subscriptions", json=payload, headers=tenant.headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_add_months_clamps_to_month_end() -> None:
    assert add_months(datetime(2026, 1, 31, tzinfo=timezone.utc), 1) == datetime(2026, 2, 28, tzinfo=timezone.utc)
    assert add_months(datetime(2026, 12, 15, tzinfo=timezone.utc), 1) == datetime(2027, 1, 15, tzinfo=timezone.utc)


def test_create_subscription(client: TestClient, tenant: Tenant) -> None:
    body = _subscribe(client, tenant)
    assert body["status"] == "ACTIVE"
    assert body["current_usage"] == 0
    assert any(item.get("event_type") == "subscription.created" for item in events.published_events)

    duplicate = client.post(
        "/subscriptions",
        json={"business_id": str(tenant.business.id), "plan": "PRO", "monthly_limit": 10},
        headers=tenant.headers,
    )
    assert duplicate.status_code == 409

    lookup = client.get(f"/subscriptions/business/{tenant.business.id}", headers=tenant.headers)
    assert lookup.json()["id"] == body["id"]


def test_trial_subscription_starts_in_trial(client: TestClient, tenant: Tenant) -> None:
    body = _subscribe(client, tenant, plan="TRIAL", trial_ends_at="2026-11-01T00:00:00Z")
    assert body["status"] == "TRIAL"


def test_non_member_cannot_subscribe(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    outsider = create_user(db_session, "outsider@example.com")
    response = client.post(
        "/subscriptions",
        json={"business_id": str(tenant.business.id), "plan": "BASIC", "monthly_limit": 5},
        headers=auth_headers(outsider),
    )
    assert response.status_code == 403


def test_usage_quota(client: TestClient, tenant: Tenant) -> None:
    _subscribe(client, tenant)
    url = f"/subscriptions/business/{tenant.business.id}/usage"

    assert client.post(url, json={}, headers=tenant.headers).json()["current_usage"] == 1
    assert client.post(url, json={"amount": 1}, headers=tenant.headers).json()["current_usage"] == 2

    exceeded = client.post(url, json={}, headers=tenant.headers)
    assert exceeded.status_code == 429
    assert exceeded.json()["context"] == {"monthlyLimit": 2, "currentUsage": 2}


def test_usage_batch_cannot_overshoot_limit(client: TestClient, tenant: Tenant) -> None:
    _subscribe(client, tenant, monthly_limit=100)
    url = f"/subscriptions/business/{tenant.business.id}/usage"
    assert client.post(url, json={"amount": 99}, headers=tenant.headers).json()["current_usage"] == 99

    overshoot = client.post(url, json={"amount": 5}, headers=tenant.headers)
    assert overshoot.status_code == 429
    assert overshoot.json()["context"] == {"monthlyLimit": 100, "currentUsage": 99}

    assert client.post(url, json={"amount": 1}, headers=tenant.headers).json()["current_usage"] == 100


def test_update_and_cancel(client: TestClient, tenant: Tenant) -> None:
    subscription = _subscribe(client, tenant)

    updated = client.patch(
        f"/subscriptions/{subscription['id']}", json={"plan": "PRO", "monthly_limit": 500}, headers=tenant.headers
    )
    assert updated.json()["plan"] == "PRO"
    assert updated.json()["monthly_limit"] == 500

    canceled = client.post(f"/subscriptions/{subscription['id']}/cancel", headers=tenant.headers)
    assert canceled.json()["status"] == "CANCELED"
    assert canceled.json()["canceled_at"] is not None

    again = client.post(f"/subscriptions/{subscription['id']}/cancel", headers=tenant.headers)
    assert again.status_code == 422


def test_admin_only_operations(
    client: TestClient,
    db_session: Session,
    tenant: Tenant,
    admin_headers: dict[str, str],
) -> None:
    subscription = _subscribe(client, tenant)
    other = create_tenant(db_session, "other@example.com")
    _subscribe(client, other, plan="PRO")
    client.post(f"/subscriptions/business/{tenant.business.id}/usage", json={}, headers=tenant.headers)

    assert client.get("/subscriptions/stats", headers=tenant.headers).status_code == 403
    stats = client.get("/subscriptions/stats", headers=admin_headers).json()
    assert stats == {"total": 2, "by_plan": {"BASIC": 1, "PRO": 1}, "by_status": {"ACTIVE": 2}}

    reset_url = f"/subscriptions/{subscription['id']}/reset-billing-cycle"
    assert client.post(reset_url, headers=tenant.headers).status_code == 403
    reset = client.post(reset_url, headers=admin_headers)
    assert reset.json()["current_usage"] == 0


def test_list_is_scoped(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    _subscribe(client, tenant)
    other = create_tenant(db_session, "other@example.com")
    foreign = _subscribe(client, other)

    listing = client.get("/subscriptions", headers=tenant.headers).json()
    assert listing["total"] == 1
    assert listing["data"][0]["business_id"] == str(tenant.business.id)

    assert client.get(f"/subscriptions/{foreign['id']}", headers=tenant.headers).status_code == 403
