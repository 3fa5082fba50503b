from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import httpx
import pytest
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from sqlalchemy.orm import Session

from inquaire import tasks
from inquaire.business.ai.client import OpenAiClient
from inquaire.business.ai.service import ai_service
from inquaire.otel import setup_inmemory_otel, webhook_span_attributes
from tests.conftest import Tenant, create_inquiry


@pytest.fixture()
def span_exporter() -> InMemorySpanExporter:
    exporter = setup_inmemory_otel("inquaire-api")
    exporter.clear()
    return exporter


def test_request_span_contains_correlation_id(
    client: TestClient,
    tenant: Tenant,
    span_exporter: InMemorySpanExporter,
) -> None:
    response = client.get(
        f"/industry-configs/{uuid.uuid4()}",
        headers={**tenant.headers, "X-Correlation-Id": "otel-corr-1"},
    )
    assert response.status_code == 404

    spans = span_exporter.get_finished_spans()
    assert spans
    assert any(span.attributes.get("correlation_id") == "otel-corr-1" for span in spans)


def test_job_and_openai_spans(
    db_session: Session,
    tenant: Tenant,
    span_exporter: InMemorySpanExporter,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    @contextmanager
    def scope() -> Iterator[Session]:
        yield db_session

    completion = {"choices": [{"message": {"role": "assistant", "content": '{"type": "general"}'}}]}
    client = OpenAiClient(
        "sk-test",
        client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=completion))),
    )
    monkeypatch.setattr(tasks, "_session_scope", scope)
    monkeypatch.setattr(ai_service, "client", client)
    inquiry = create_inquiry(db_session, tenant)

    tasks.run_analyze_inquiry(str(inquiry.id))

    spans = span_exporter.get_finished_spans()
    job_spans = [span for span in spans if span.name == "job.run"]
    assert any(
        span.attributes.get("job_name") == "inquaire.tasks.analyze_inquiry"
        and span.attributes.get("inquiry_id") == str(inquiry.id)
        for span in job_spans
    )
    openai_spans = [span for span in spans if span.name == "openai.chat_completion"]
    assert openai_spans
    assert openai_spans[0].attributes.get("status_code") == 200
    assert openai_spans[0].attributes.get("model") == "gpt-4o-mini"


def test_webhook_request_span_is_tagged_with_platform(
    client: TestClient,
    tenant: Tenant,
    span_exporter: InMemorySpanExporter,
) -> None:
    response = client.post(
        f"/webhooks/kakao/{tenant.channel.id}",
        json={"type": "text", "content": "Hello", "user_key": "kakao-span"},
    )
    assert response.status_code == 200

    spans = span_exporter.get_finished_spans()
    assert any(
        span.attributes.get("webhook.platform") == "KAKAO"
        and span.attributes.get("channel_id") == str(tenant.channel.id)
        for span in spans
    )


def test_webhook_span_attributes() -> None:
    assert webhook_span_attributes("/webhooks/naver-talk/abc") == {"webhook.platform": "NAVER_TALK", "channel_id": "abc"}
    assert webhook_span_attributes("/webhooks/unknown/abc") == {}
    assert webhook_span_attributes("/inquiries/abc") == {}
