from __future__ import annotations

from fastapi.testclient import TestClient

from tests.conftest import Tenant


def _create(client: TestClient, headers: dict[str, str], industry: str = "DENTAL") -> dict:
    response = client.post(
        "/industry-configs",
        json={
            "industry": industry,
            "system_prompt": "You are a dental clinic assistant.",
            "default_templates": [{"name": "Greeting", "content": "Hello!"}],
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_writes_require_system_admin(client: TestClient, tenant: Tenant) -> None:
    response = client.post(
        "/industry-configs",
        json={"industry": "DENTAL", "system_prompt": "x"},
        headers=tenant.headers,
    )
    assert response.status_code == 403


def test_admin_manages_configs(client: TestClient, tenant: Tenant, admin_headers: dict[str, str]) -> None:
    created = _create(client, admin_headers)
    assert created["default_templates"] == [{"name": "Greeting", "content": "Hello!"}]

    duplicate = client.post(
        "/industry-configs",
        json={"industry": "DENTAL", "system_prompt": "again"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    by_industry = client.get("/industry-configs/industry/DENTAL", headers=tenant.headers)
    assert by_industry.json()["id"] == created["id"]
    assert client.get("/industry-configs/industry/LAW_FIRM", headers=tenant.headers).status_code == 404

    _create(client, admin_headers, industry="REAL_ESTATE")
    listing = client.get("/industry-configs", headers=tenant.headers).json()
    assert listing["total"] == 2
    filtered = client.get("/industry-configs", params={"industry": "REAL_ESTATE"}, headers=tenant.headers).json()
    assert [item["industry"] for item in filtered["data"]] == ["REAL_ESTATE"]

    updated = client.patch(
        f"/industry-configs/{created['id']}",
        json={"system_prompt": "Updated prompt"},
        headers=admin_headers,
    )
    assert updated.json()["system_prompt"] == "Updated prompt"

    deleted = client.delete(f"/industry-configs/{created['id']}", headers=admin_headers)
    assert deleted.status_code == 204
    assert client.get(f"/industry-configs/{created['id']}", headers=tenant.headers).status_code == 404
