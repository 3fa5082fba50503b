from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inquaire.business.reply_templates.service import render_content, template_variables
from tests.conftest import Tenant, create_tenant


def _create_template(client: TestClient, tenant: Tenant, **overrides: object) -> dict:
    payload = {
        "business_id": str(tenant.business.id),
        "name": "Booking confirmation",
        "type": "reservation",
        "content": "Hello {{customer_name}}, your visit on {{ date }} is confirmed. See you, {{customer_name}}!",
    }
    payload.update(overrides)
    response = client.post("/reply-templates", json=payload, headers=tenant.headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_variables_are_detected_from_content(client: TestClient, tenant: Tenant) -> None:
    body = _create_template(client, tenant)
    assert body["variables"] == ["customer_name", "date"]
    assert body["usage_count"] == 0
    assert body["is_active"] is True

    explicit = _create_template(client, tenant, name="Other", variables=["custom"])
    assert explicit["variables"] == ["custom"]


def test_render_reports_missing_variables(client: TestClient, tenant: Tenant) -> None:
    template = _create_template(client, tenant)

    response = client.post(
        f"/reply-templates/{template['id']}/render",
        json={"values": {"customer_name": "Kim"}},
        headers=tenant.headers,
    )
    assert response.status_code == 200
    assert response.json() == {
        "template_id": template["id"],
        "content": "Hello Kim, your visit on {{ date }} is confirmed. See you, Kim!",
        "missing_variables": ["date"],
    }


def test_render_helpers() -> None:
    assert template_variables("No placeholders") == []
    assert render_content("{{a}} and {{b}}", {"a": "1", "b": "2"}) == ("1 and 2", [])


def test_use_orders_listing_by_popularity(client: TestClient, tenant: Tenant) -> None:
    first = _create_template(client, tenant, name="Pricing", type="pricing", content="Prices start at {{price}}.")
    second = _create_template(client, tenant, name="Directions", type="general", content="We are next to the station.")

    for _ in range(2):
        used = client.post(f"/reply-templates/{second['id']}/use", headers=tenant.headers)
    assert used.json()["usage_count"] == 2

    listing = client.get("/reply-templates", headers=tenant.headers).json()
    assert [item["id"] for item in listing["data"]] == [second["id"], first["id"]]

    pricing = client.get("/reply-templates", params={"type": "pricing"}, headers=tenant.headers).json()
    assert [item["name"] for item in pricing["data"]] == ["Pricing"]

    searched = client.get("/reply-templates", params={"search": "station"}, headers=tenant.headers).json()
    assert searched["pagination"]["total"] == 1


def test_update_recomputes_variables_and_delete(client: TestClient, tenant: Tenant) -> None:
    template = _create_template(client, tenant)

    updated = client.patch(
        f"/reply-templates/{template['id']}",
        json={"content": "Dear {{name}}, thanks!", "is_active": False},
        headers=tenant.headers,
    )
    assert updated.json()["variables"] == ["name"]
    assert updated.json()["is_active"] is False

    inactive = client.get("/reply-templates", params={"is_active": False}, headers=tenant.headers).json()
    assert inactive["pagination"]["total"] == 1

    deleted = client.delete(f"/reply-templates/{template['id']}", headers=tenant.headers)
    assert deleted.status_code == 200
    assert client.get(f"/reply-templates/{template['id']}", headers=tenant.headers).status_code == 404


def test_templates_of_other_tenants_are_hidden(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    other = create_tenant(db_session, "other@example.com")
    foreign = _create_template(client, other)

    assert client.get(f"/reply-templates/{foreign['id']}", headers=tenant.headers).status_code == 403
    assert client.get("/reply-templates", headers=tenant.headers).json()["pagination"]["total"] == 0
