from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from inquaire.core.config import get_settings
from inquaire.middleware.rate_limit import reset_rate_limiter
from tests.conftest import Tenant


@pytest.fixture(autouse=True)
def configure_rate_limiter_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "false")
    monkeypatch.setenv("RATE_LIMIT_MUTATIONS_PER_MINUTE", "3")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    reset_rate_limiter()
    get_settings.cache_clear()


def _create_customer(client: TestClient, tenant: Tenant, index: int):
    return client.post(
        "/customers",
        json={
            "business_id": str(tenant.business.id),
            "platform": "KAKAO",
            "platform_user_id": f"rate-limit-{index}",
            "name": f"Customer {index}",
        },
        headers=tenant.headers,
    )


def test_mutating_endpoints_are_rate_limited(client: TestClient, tenant: Tenant) -> None:
    responses = [_create_customer(client, tenant, index) for index in range(5)]

    assert [response.status_code for response in responses[:3]] == [201, 201, 201]
    limited = [response for response in responses if response.status_code == 429]
    assert limited

    first_limited = limited[0]
    body = first_limited.json()
    assert body["errorCode"] == "RATE_LIMITED"
    assert body["message"] == "Too many requests"
    assert body["correlation_id"] is not None
    assert first_limited.headers.get("Retry-After") is not None


def test_get_endpoints_are_not_rate_limited(client: TestClient, tenant: Tenant) -> None:
    assert _create_customer(client, tenant, 0).status_code == 201

    responses = [client.get("/customers", headers=tenant.headers) for _ in range(10)]
    assert all(response.status_code != 429 for response in responses)


def test_webhooks_are_exempt(client: TestClient, tenant: Tenant) -> None:
    responses = [
        client.post(
            f"/webhooks/kakao/{tenant.channel.id}",
            json={"type": "text", "content": f"Message {index}", "user_key": "kakao-1"},
        )
        for index in range(5)
    ]
    assert all(response.status_code == 200 for response in responses)
