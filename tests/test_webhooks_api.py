from __future__ import annotations

import json
import time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from inquaire import jobs
from inquaire.business.customers.models import Customer
from inquaire.business.inquiries.models import Inquiry
from inquaire.business.inquiries.service import inquiries_service
from inquaire.business.webhooks.models import WebhookEvent
from inquaire.business.webhooks.service import webhooks_service
from inquaire.business.webhooks.signatures import compute_instagram_signature, compute_signature
from inquaire.core.config import get_settings
from inquaire.core.database import utcnow
from inquaire.platform.error_logs.models import ErrorLog
from tests.conftest import Tenant, create_tenant


def _now_ms() -> int:
    return int(time.time() * 1000)


def _configure(monkeypatch: pytest.MonkeyPatch, **env: str) -> None:
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    get_settings.cache_clear()


def _events(session: Session) -> list[WebhookEvent]:
    return list(session.scalars(select(WebhookEvent)).all())


def test_kakao_message_creates_customer_and_inquiry(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    payload = {
        "type": "text",
        "content": {"text": "Do you have a slot on Friday?"},
        "user": {"id": "kakao-42", "properties": {"nickname": "Park"}},
        "event_id": "evt-1",
    }
    response = client.post(f"/webhooks/kakao/{tenant.channel.id}", json=payload)
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["success"] is True

    inquiry = db_session.scalar(select(Inquiry))
    assert inquiry is not None
    assert inquiry.message_text == "Do you have a slot on Friday?"
    assert inquiry.status == "NEW"
    assert inquiry.platform_message_id == "evt-1"
    assert str(inquiry.id) == body["inquiry_id"]

    customer = db_session.scalar(select(Customer).where(Customer.platform_user_id == "kakao-42"))
    assert customer is not None
    assert customer.name == "Park"
    assert customer.inquiry_count == 1
    assert str(customer.id) == body["customer_id"]

    assert [job["job_name"] for job in jobs.queued_jobs] == [jobs.ANALYZE_INQUIRY]
    [event] = _events(db_session)
    assert event.processed is True
    assert event.event_type == "message_received"
    assert event.platform == "KAKAO"


def test_kakao_duplicate_delivery_is_rejected(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    payload = {"type": "text", "content": "Hello", "user_key": "kakao-7"}

    assert client.post(f"/webhooks/kakao/{tenant.channel.id}", json=payload).status_code == 200
    duplicate = client.post(f"/webhooks/kakao/{tenant.channel.id}", json=payload)
    assert duplicate.status_code == 400
    assert duplicate.json()["errorCode"] == "VALIDATION_INVALID_INPUT"

    assert len(_events(db_session)) == 1
    assert db_session.scalar(select(ErrorLog)) is None


def test_kakao_unsupported_message_type(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    response = client.post(f"/webhooks/kakao/{tenant.channel.id}", json={"type": "photo", "user_key": "kakao-7"})
    assert response.json() == {"success": True, "message": "Message type not supported"}
    assert db_session.scalar(select(Inquiry)) is None


def test_kakao_signature_is_enforced_once_configured(
    client: TestClient,
    tenant: Tenant,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _configure(monkeypatch, KAKAO_WEBHOOK_SECRET="kakao-secret")
    body = json.dumps({"type": "text", "content": "Hi", "user_key": "kakao-1"}).encode("utf-8")
    url = f"/webhooks/kakao/{tenant.channel.id}"
    headers = {"Content-Type": "application/json"}

    missing = client.post(url, content=body, headers=headers)
    assert missing.status_code == 401
    assert missing.json()["errorCode"] == "AUTH_INVALID_TOKEN"

    wrong = client.post(url, content=body, headers={**headers, "X-Kakao-Signature": "bogus"})
    assert wrong.status_code == 401

    signed = client.post(
        url,
        content=body,
        headers={**headers, "X-Kakao-Signature": compute_signature(body, "kakao-secret")},
    )
    assert signed.status_code == 200


def test_invalid_json_body(client: TestClient, tenant: Tenant) -> None:
    response = client.post(
        f"/webhooks/kakao/{tenant.channel.id}",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["errorCode"] == "VALIDATION_INVALID_FORMAT"


def test_deleted_channel_is_not_found_and_logged(client: TestClient, db_session: Session, tenant: Tenant) -> None:
    tenant.channel.deleted_at = utcnow()
    db_session.add(tenant.channel)
    db_session.commit()

    response = client.post(f"/webhooks/kakao/{tenant.channel.id}", json={"type": "text", "content": "Hi"})
    assert response.status_code == 404

    log = db_session.scalar(select(ErrorLog))
    assert log is not None
    assert log.error_type == "KAKAO_WEBHOOK"
    assert log.context["channelId"] == str(tenant.channel.id)
    assert _events(db_session) == []


def test_line_processes_fresh_text_events(
    client: TestClient,
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _configure(monkeypatch, LINE_CHANNEL_SECRET="line-secret")
    line = create_tenant(db_session, "line@example.com", platform="LINE")
    now = _now_ms()
    payload = {
        "events": [
            {
                "type": "message",
                "timestamp": now,
                "replyToken": "reply-1",
                "source": {"userId": "U-line-1"},
                "message": {"id": "m-1", "type": "text", "text": "Are you open on Sunday?"},
            },
            {
                "type": "message",
                "timestamp": now - 3_600_000,
                "source": {"userId": "U-line-1"},
                "message": {"id": "m-old", "type": "text", "text": "Stale"},
            },
            {
                "type": "message",
                "timestamp": now,
                "source": {"userId": "U-line-1"},
                "message": {"id": "m-2", "type": "sticker"},
            },
            {"type": "follow", "timestamp": now, "source": {"userId": "U-line-2"}},
        ]
    }
    body = json.dumps(payload).encode("utf-8")
    headers = {"Content-Type": "application/json", "X-Line-Signature": compute_signature(body, "line-secret")}

    response = client.post(f"/webhooks/line/{line.channel.id}", content=body, headers=headers)
    assert response.status_code == 200, response.text
    result = response.json()
    assert result["processed"] == 1
    assert result["results"][0]["reply_token"] == "reply-1"

    inquiry = db_session.scalar(select(Inquiry))
    assert inquiry.message_text == "Are you open on Sunday?"
    assert inquiry.platform_message_id == "m-1"

    replay = client.post(f"/webhooks/line/{line.channel.id}", content=body, headers=headers)
    assert replay.json()["processed"] == 0


def test_line_requires_signature(client: TestClient, db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    line = create_tenant(db_session, "line@example.com", platform="LINE")
    assert client.post(f"/webhooks/line/{line.channel.id}", json={"events": []}).status_code == 401

    _configure(monkeypatch, LINE_CHANNEL_SECRET="line-secret")
    unsigned = client.post(f"/webhooks/line/{line.channel.id}", json={"events": []})
    assert unsigned.status_code == 401


def test_naver_talk_send_event(client: TestClient, db_session: Session) -> None:
    naver = create_tenant(db_session, "naver@example.com", platform="NAVER_TALK")
    payload = {
        "event": "send",
        "user": {"userIdNo": "naver-9", "nickname": "Lee"},
        "textContent": {"text": "How much is a consultation?"},
    }

    response = client.post(f"/webhooks/naver-talk/{naver.channel.id}", json=payload)
    assert response.status_code == 200, response.text

    customer = db_session.scalar(select(Customer).where(Customer.platform_user_id == "naver-9"))
    assert customer.name == "Lee"
    assert customer.platform == "NAVER_TALK"
    assert db_session.scalar(select(Inquiry)).message_text == "How much is a consultation?"


def test_naver_talk_other_events_are_recorded_only(client: TestClient, db_session: Session) -> None:
    naver = create_tenant(db_session, "naver@example.com", platform="NAVER_TALK")

    response = client.post(
        f"/webhooks/naver-talk/{naver.channel.id}",
        json={"event": "open", "user": {"userIdNo": "naver-9"}},
    )
    assert response.json()["message"] == "Event type not supported for inquiry creation"
    [event] = _events(db_session)
    assert event.event_type == "open"
    assert event.processed is True


def test_malformed_payload_is_logged_without_retry(client: TestClient, db_session: Session) -> None:
    naver = create_tenant(db_session, "naver@example.com", platform="NAVER_TALK")

    response = client.post(f"/webhooks/naver-talk/{naver.channel.id}", json={"event": "send"})
    assert response.status_code == 400
    assert response.json()["context"]["platform"] == "NAVER_TALK"

    [event] = _events(db_session)
    assert event.processed is False
    assert event.error_message == "Malformed webhook payload"
    assert event.retry_count == 0
    assert db_session.scalar(select(ErrorLog)).error_type == "NAVER_TALK_WEBHOOK"
    assert not any(job["job_name"] == jobs.RETRY_WEBHOOK for job in jobs.queued_jobs)


def test_unexpected_failure_schedules_retry(
    db_session: Session,
    tenant: Tenant,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def boom(*args: object, **kwargs: object) -> None:
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(type(inquiries_service), "record_inbound", boom)

    with pytest.raises(RuntimeError):
        webhooks_service.handle(
            db_session,
            "KAKAO",
            tenant.channel.id,
            {"type": "text", "content": "Hi", "user_key": "kakao-1"},
        )

    [event] = _events(db_session)
    assert event.error_message == "database unavailable"
    assert event.retry_count == 1
    [job] = [job for job in jobs.queued_jobs if job["job_name"] == jobs.RETRY_WEBHOOK]
    assert job["args"] == [str(event.id)]
    assert job["countdown"] == 60


def test_instagram_verification_handshake(
    client: TestClient,
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    instagram = create_tenant(db_session, "ig@example.com", platform="INSTAGRAM")
    url = f"/webhooks/instagram/{instagram.channel.id}"
    params = {"hub.mode": "subscribe", "hub.verify_token": "global-token", "hub.challenge": "1158201444"}

    assert client.get(url, params=params).status_code == 403

    _configure(monkeypatch, INSTAGRAM_VERIFY_TOKEN="global-token")
    verified = client.get(url, params=params)
    assert verified.status_code == 200
    assert verified.text == "1158201444"

    assert client.get(url, params={**params, "hub.mode": "unsubscribe"}).status_code == 403

    instagram.channel.webhook_secret = "channel-token"
    db_session.add(instagram.channel)
    db_session.commit()
    assert client.get(url, params=params).status_code == 403
    assert client.get(url, params={**params, "hub.verify_token": "channel-token"}).text == "1158201444"


def test_instagram_messages_skip_echoes(
    client: TestClient,
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _configure(monkeypatch, INSTAGRAM_APP_SECRET="ig-secret")
    instagram = create_tenant(db_session, "ig@example.com", platform="INSTAGRAM")
    payload = {
        "object": "instagram",
        "entry": [
            {
                "id": "page-1",
                "messaging": [
                    {
                        "sender": {"id": "ig-user-1"},
                        "timestamp": _now_ms(),
                        "message": {"mid": "mid-1", "text": "Is parking available?"},
                    },
                    {
                        "sender": {"id": "page-1"},
                        "timestamp": _now_ms(),
                        "message": {"mid": "mid-2", "text": "Thanks!", "is_echo": True},
                    },
                ],
            }
        ],
    }
    body = json.dumps(payload).encode("utf-8")
    url = f"/webhooks/instagram/{instagram.channel.id}"

    rejected = client.post(
        url,
        content=body,
        headers={"Content-Type": "application/json", "X-Hub-Signature-256": "sha256=deadbeef"},
    )
    assert rejected.status_code == 401

    response = client.post(
        url,
        content=body,
        headers={
            "Content-Type": "application/json",
            "X-Hub-Signature-256": compute_instagram_signature(body, "ig-secret"),
        },
    )
    assert response.status_code == 200, response.text
    result = response.json()
    assert result["processed"] == 1
    assert result["results"][0]["sender_id"] == "ig-user-1"
    assert db_session.scalar(select(Inquiry)).platform_message_id == "mid-1"
