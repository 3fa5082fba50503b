from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inquaire.business.customers.models import Customer
from inquaire.business.customers.service import customers_service
from inquaire.business.inquiries.models import Inquiry
from tests.conftest import Tenant, create_inquiry, create_tenant


def _create_customer(client: TestClient, tenant: Tenant, platform_user_id: str, **overrides: object) -> dict:
    payload = {"business_id": str(tenant.business.id), "platform": "KAKAO", "platform_user_id": platform_user_id}
    payload.update(overrides)
    response = client.post("/customers", json=payload, headers=tenant.headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_customer_and_conflict(client: TestClient, tenant: Tenant) -> None:
    body = _create_customer(client, tenant, "user-0002", name="Lee", tags=["vip"], metadata={"source": "ad"})
    assert body["tags"] == ["vip"]
    assert body["metadata"] == {"source": "ad"}
    assert body["inquiry_count"] == 0

    duplicate = client.post(
        "/customers",
        json={"business_id": str(tenant.business.id), "platform": "KAKAO", "platform_user_id": "user-0001"},
        headers=tenant.headers,
    )
    assert duplicate.status_code == 409


def test_list_filters_and_paginates(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    _create_customer(client, tenant, "user-0002", name="Park", tags=["vip"])
    _create_customer(client, tenant, "line-0003", platform="LINE", name="Choi", email="choi@example.com")
    create_tenant(db_session, "other@example.com")

    page = client.get("/customers", params={"limit": 2, "sort_by": "name", "sort_order": "asc"}, headers=tenant.headers)
    body = page.json()
    assert body["success"] is True
    assert [item["name"] for item in body["data"]] == ["Choi", "Kim"]
    assert body["pagination"] == {
        "page": 1,
        "limit": 2,
        "total": 3,
        "totalPages": 2,
        "hasNext": True,
        "hasPrev": False,
    }

    tagged = client.get("/customers", params={"tag": "vip"}, headers=tenant.headers)
    assert [item["name"] for item in tagged.json()["data"]] == ["Park"]

    line = client.get("/customers", params={"platform": "LINE"}, headers=tenant.headers)
    assert line.json()["pagination"]["total"] == 1

    searched = client.get("/customers", params={"search": "choi@"}, headers=tenant.headers)
    assert [item["platform_user_id"] for item in searched.json()["data"]] == ["line-0003"]


def test_tag_filter_matches_whole_tags(client: TestClient, tenant: Tenant) -> None:
    _create_customer(client, tenant, "user-0010", name="Regular", tags=["단골", "vip"])
    _create_customer(client, tenant, "user-0011", name="Gold", tags=["vip_gold"])
    _create_customer(client, tenant, "user-0012", name="Lookalike", tags=["vipXgold"])

    def names(tag: str) -> list[str]:
        response = client.get("/customers", params={"tag": tag, "sort_by": "name", "sort_order": "asc"}, headers=tenant.headers)
        assert response.status_code == 200
        return [item["name"] for item in response.json()["data"]]

    assert names("단골") == ["Regular"]
    assert names("vip_gold") == ["Gold"]
    assert names("vip") == ["Regular"]
    assert names("vip%") == []
    assert names("gold") == []


def test_detail_includes_recent_inquiries(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    create_inquiry(db_session, tenant, "Do you open on Sunday?")

    response = client.get(f"/customers/{tenant.customer.id}", headers=tenant.headers)
    assert response.status_code == 200
    recent = response.json()["recent_inquiries"]
    assert [item["message_text"] for item in recent] == ["Do you open on Sunday?"]


def test_update_and_touch(client: TestClient, tenant: Tenant) -> None:
    updated = client.patch(
        f"/customers/{tenant.customer.id}",
        json={"phone": "010-1234-5678", "tags": ["returning"], "metadata": {"note": "prefers mornings"}},
        headers=tenant.headers,
    )
    assert updated.status_code == 200
    assert updated.json()["tags"] == ["returning"]
    assert updated.json()["metadata"] == {"note": "prefers mornings"}

    touched = client.patch(f"/customers/{tenant.customer.id}/last-contact", headers=tenant.headers)
    assert touched.status_code == 200
    assert touched.json()["phone"] == "010-1234-5678"


def test_delete_blocked_by_open_inquiries(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    create_inquiry(db_session, tenant)

    blocked = client.delete(f"/customers/{tenant.customer.id}", headers=tenant.headers)
    assert blocked.status_code == 422

    spare = _create_customer(client, tenant, "user-0009")
    assert client.delete(f"/customers/{spare['id']}", headers=tenant.headers).status_code == 200
    assert client.get(f"/customers/{spare['id']}", headers=tenant.headers).status_code == 403


def test_stats(client: TestClient, tenant: Tenant) -> None:
    _create_customer(client, tenant, "line-0003", platform="LINE")

    response = client.get("/customers/stats", params={"business_id": str(tenant.business.id)}, headers=tenant.headers)
    assert response.json()["total"] == 2
    assert response.json()["by_platform"] == {"KAKAO": 1, "LINE": 1}
    assert response.json()["new_last_7_days"] == 2


def test_merge_moves_inquiries(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    source = Customer(
        business_id=tenant.business.id,
        platform="KAKAO",
        platform_user_id="user-dup",
        tags=[],
        extra_metadata={},
        inquiry_count=2,
    )
    db_session.add(source)
    db_session.flush()
    inquiry = Inquiry(
        business_id=tenant.business.id,
        channel_id=tenant.channel.id,
        customer_id=source.id,
        message_text="Asked twice from another account",
    )
    db_session.add(inquiry)
    db_session.commit()

    response = client.post(
        "/customers/merge",
        json={"source_customer_id": str(source.id), "target_customer_id": str(tenant.customer.id)},
        headers=tenant.headers,
    )
    assert response.status_code == 200
    assert response.json()["inquiry_count"] == 2

    db_session.refresh(inquiry)
    db_session.refresh(source)
    assert inquiry.customer_id == tenant.customer.id
    assert source.deleted_at is not None

    same = client.post(
        "/customers/merge",
        json={"source_customer_id": str(tenant.customer.id), "target_customer_id": str(tenant.customer.id)},
        headers=tenant.headers,
    )
    assert same.status_code == 400


def test_webhook_after_merge_lands_on_target(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    source = Customer(
        business_id=tenant.business.id,
        platform="KAKAO",
        platform_user_id="user-old-account",
        tags=[],
        extra_metadata={},
        inquiry_count=3,
    )
    db_session.add(source)
    db_session.commit()

    merged = client.post(
        "/customers/merge",
        json={"source_customer_id": str(source.id), "target_customer_id": str(tenant.customer.id)},
        headers=tenant.headers,
    )
    assert merged.json()["inquiry_count"] == 3

    response = client.post(
        f"/webhooks/kakao/{tenant.channel.id}",
        json={"type": "text", "content": "Back again", "user_key": "user-old-account", "event_id": "evt-after-merge"},
    )
    assert response.status_code == 200, response.text
    assert response.json()["customer_id"] == str(tenant.customer.id)

    db_session.refresh(source)
    db_session.refresh(tenant.customer)
    assert source.deleted_at is not None
    assert source.inquiry_count == 0
    assert source.extra_metadata == {"merged_into": str(tenant.customer.id)}
    assert tenant.customer.inquiry_count == 4

    revived = customers_service.find_or_create_by_platform_user(
        db_session, tenant.business.id, "KAKAO", "user-old-account"
    )
    assert revived.id == tenant.customer.id


def test_find_or_create_by_platform_user_names_new_customers(db_session: Session, tenant: Tenant) -> None:
    created = customers_service.find_or_create_by_platform_user(
        db_session, tenant.business.id, "INSTAGRAM", "1784140512345678"
    )
    assert created.name == "Customer_17841405"

    existing = customers_service.find_or_create_by_platform_user(
        db_session, tenant.business.id, "KAKAO", "user-0001", name="Someone else"
    )
    assert existing.id == tenant.customer.id
    assert existing.name == "Kim"
