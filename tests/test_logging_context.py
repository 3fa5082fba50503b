from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from tests.conftest import Tenant


def test_logs_include_correlation_id_for_http(
    client: TestClient,
    tenant: Tenant,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)

    response = client.get(
        f"/industry-configs/{uuid.uuid4()}",
        headers={**tenant.headers, "X-Correlation-Id": "abc-123"},
    )
    assert response.status_code == 404

    records = [
        record
        for record in caplog.records
        if record.name == "inquaire.request" and record.getMessage() == "http.request"
    ]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/industry-configs/{id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        for record in records
    )


def test_webhook_logs_carry_platform_and_correlation_id(
    client: TestClient,
    tenant: Tenant,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)

    response = client.post(
        f"/webhooks/kakao/{tenant.channel.id}",
        json={"type": "text", "content": "Hello", "user_key": "kakao-log"},
        headers={"X-Correlation-Id": "hook-1"},
    )
    assert response.status_code == 200

    webhook_records = [record for record in caplog.records if record.name == "inquaire.webhooks"]
    assert any(
        record.getMessage() == "webhook.processed"
        and getattr(record, "platform", None) == "KAKAO"
        and getattr(record, "channel_id", None) == str(tenant.channel.id)
        and getattr(record, "correlation_id", None) == "hook-1"
        for record in webhook_records
    )

    job_records = [record for record in caplog.records if record.name == "inquaire.jobs"]
    assert any(
        record.getMessage() == "job.enqueued"
        and getattr(record, "job_name", None) == "inquaire.tasks.analyze_inquiry"
        and getattr(record, "correlation_id", None) == "hook-1"
        for record in job_records
    )
