from __future__ import annotations

import uuid

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inquaire.business.channels.models import Channel
from inquaire.business.channels.service import channels_service
from inquaire.core.encryption import is_encrypted
from tests.conftest import Tenant, create_inquiry, create_tenant


def _create_channel(client: TestClient, tenant: Tenant, **overrides: object) -> dict:
    payload = {
        "business_id": str(tenant.business.id),
        "platform": "NAVER_TALK",
        "platform_channel_id": "naver-partner-1",
        "name": "Naver TalkTalk",
        "access_token": "naver-access-token",
    }
    payload.update(overrides)
    response = client.post("/channels", json=payload, headers=tenant.headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_channel_builds_webhook_url_and_encrypts_tokens(
    client: TestClient,
    db_session: Session,
    tenant: Tenant,
) -> None:
    body = _create_channel(client, tenant)

    assert body["webhook_url"] == f"http://localhost:8000/webhooks/naver-talk/{body['id']}"
    assert len(body["webhook_secret"]) == 64
    assert body["_count"] == {"inquiries": 0}
    assert "access_token" not in body

    stored = db_session.get(Channel, uuid.UUID(body["id"]))
    assert stored.access_token != "naver-access-token"
    assert is_encrypted(stored.access_token)

    tokens = channels_service.get_decrypted_tokens(db_session, stored.id)
    assert tokens.access_token == "naver-access-token"
    assert tokens.refresh_token is None


def test_duplicate_platform_channel_conflicts(client: TestClient, tenant: Tenant) -> None:
    response = client.post(
        "/channels",
        json={
            "business_id": str(tenant.business.id),
            "platform": "KAKAO",
            "platform_channel_id": "kakao-channel",
            "name": "Again",
        },
        headers=tenant.headers,
    )
    assert response.status_code == 409
    assert response.json()["errorCode"] == "RESOURCE_CONFLICT"


def test_create_for_unknown_business_is_not_found(client: TestClient, tenant: Tenant) -> None:
    response = client.post(
        "/channels",
        json={"business_id": str(uuid.uuid4()), "platform": "LINE", "platform_channel_id": "x", "name": "x"},
        headers=tenant.headers,
    )
    assert response.status_code == 404


def test_list_filters_and_scope(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    _create_channel(client, tenant, platform="LINE", platform_channel_id="line-1", name="Line official")
    other = create_tenant(db_session, "other@example.com")

    everything = client.get("/channels", headers=tenant.headers)
    assert len(everything.json()) == 2

    line_only = client.get("/channels", params={"platform": "LINE"}, headers=tenant.headers)
    assert [item["name"] for item in line_only.json()] == ["Line official"]

    searched = client.get("/channels", params={"search": "kakao"}, headers=tenant.headers)
    assert [item["id"] for item in searched.json()] == [str(tenant.channel.id)]

    foreign = client.get(f"/channels/{other.channel.id}", headers=tenant.headers)
    assert foreign.status_code == 403


def test_toggles_and_regenerate(client: TestClient, tenant: Tenant) -> None:
    inactive = client.patch(f"/channels/{tenant.channel.id}/toggle-active", headers=tenant.headers)
    assert inactive.json()["is_active"] is False

    auto = client.patch(f"/channels/{tenant.channel.id}/toggle-auto-reply", headers=tenant.headers)
    assert auto.json()["auto_reply_enabled"] is True

    regenerated = client.post(f"/channels/{tenant.channel.id}/regenerate-webhook", headers=tenant.headers)
    assert regenerated.status_code == 200
    assert regenerated.json()["webhook_url"].endswith(f"/webhooks/kakao/{tenant.channel.id}")
    assert regenerated.json()["webhook_secret"]


def test_update_tokens_sets_default_expiry(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    response = client.patch(
        f"/channels/{tenant.channel.id}/tokens",
        json={"access_token": "new-access", "refresh_token": "new-refresh"},
        headers=tenant.headers,
    )
    assert response.status_code == 200
    assert response.json()["token_expires_at"] is not None

    tokens = channels_service.get_decrypted_tokens(db_session, tenant.channel.id)
    assert tokens.access_token == "new-access"
    assert tokens.refresh_token == "new-refresh"


def test_stats_and_delete_rules(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    inquiry = create_inquiry(db_session, tenant)
    create_inquiry(db_session, tenant, "Thanks!", status="COMPLETED")

    stats = client.get(f"/channels/{tenant.channel.id}/stats", headers=tenant.headers)
    assert stats.json()["total"] == 2
    assert stats.json()["by_status"] == {"NEW": 1, "COMPLETED": 1}
    assert stats.json()["last_7_days"] == 2

    blocked = client.delete(f"/channels/{tenant.channel.id}", headers=tenant.headers)
    assert blocked.status_code == 422
    assert blocked.json()["context"]["openInquiries"] == 1

    inquiry.status = "COMPLETED"
    db_session.commit()

    deleted = client.delete(f"/channels/{tenant.channel.id}", headers=tenant.headers)
    assert deleted.status_code == 200
    db_session.refresh(tenant.channel)
    assert tenant.channel.is_active is False
    assert tenant.channel.deleted_at is not None
