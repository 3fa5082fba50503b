from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from inquaire.core.config import get_settings
from tests.conftest import Tenant


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_metrics_endpoint_exposes_http_and_webhook_metrics(
    client: TestClient,
    tenant: Tenant,
    admin_headers: dict[str, str],
) -> None:
    assert client.get("/health").status_code == 200

    webhook = client.post(
        f"/webhooks/kakao/{tenant.channel.id}",
        json={"type": "text", "content": "Are you open today?", "user_key": "kakao-metrics"},
    )
    assert webhook.status_code == 200
    assert client.get(f"/inquiries/{webhook.json()['inquiry_id']}", headers=tenant.headers).status_code == 200

    metrics = client.get("/metrics", headers=admin_headers)
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "webhook_events_total" in body
    assert "inquiries_created_total" in body

    assert 'path="/health"' in body
    assert 'path="/inquiries/{id}"' in body
    assert 'platform="KAKAO"' in body


def test_metrics_require_system_admin(client: TestClient, tenant: Tenant) -> None:
    assert client.get("/metrics").status_code == 401
    assert client.get("/metrics", headers=tenant.headers).status_code == 403


def test_metrics_hidden_when_disabled(
    client: TestClient,
    admin_headers: dict[str, str],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()
    assert client.get("/metrics", headers=admin_headers).status_code == 404
