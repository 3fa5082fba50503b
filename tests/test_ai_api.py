from __future__ import annotations

import json

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inquaire.business.ai.client import OpenAiClient, OpenAiError
from inquaire.business.ai.service import (
    FALLBACK_CLASSIFICATION,
    FALLBACK_REPLY,
    FALLBACK_TYPE,
    ai_service,
    default_system_prompt,
)
from inquaire.business.industry_configs.models import IndustryConfig
from tests.conftest import Tenant, create_inquiry


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _install_client(monkeypatch: pytest.MonkeyPatch, handler) -> list[dict]:
    requests: list[dict] = []

    def recording(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return handler(request)

    client = OpenAiClient("sk-test", client=httpx.Client(transport=httpx.MockTransport(recording)))
    monkeypatch.setattr(ai_service, "client", client)
    return requests


def test_endpoints_fall_back_without_api_key(client: TestClient, tenant: Tenant) -> None:
    analysis = client.post("/ai/analyze", json={"message": "Hello there"}, headers=tenant.headers)
    assert analysis.status_code == 200
    assert analysis.json()["type"] == FALLBACK_TYPE
    assert analysis.json()["confidence"] == 0.5

    reply = client.post("/ai/generate-reply", json={"message": "Hello"}, headers=tenant.headers)
    assert reply.json() == {"reply": FALLBACK_REPLY}

    classification = client.post("/ai/classify", json={"message": "Hello"}, headers=tenant.headers)
    assert classification.json() == {"classification": FALLBACK_CLASSIFICATION}


def test_endpoints_require_authentication(client: TestClient) -> None:
    assert client.post("/ai/classify", json={"message": "Hello"}).status_code == 401


def test_analyze_uses_model_response(
    client: TestClient,
    db_session: Session,
    tenant: Tenant,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    analysis = {
        "type": "reservation",
        "summary": "Wants a cleaning on Monday",
        "extracted_info": {"desired_date": "2026-10-26"},
        "sentiment": "positive",
        "urgency": "low",
        "suggested_reply": "Monday at 10am works.",
        "confidence": 0.92,
    }
    requests = _install_client(monkeypatch, lambda request: httpx.Response(200, json=_completion(json.dumps(analysis))))
    inquiry = create_inquiry(db_session, tenant, "Can I book a cleaning on Monday?")

    response = client.post(f"/inquiries/{inquiry.id}/analyze", headers=tenant.headers)
    assert response.status_code == 200
    body = response.json()
    assert body["type"] == "reservation"
    assert body["extracted_info"] == {"desired_date": "2026-10-26"}
    assert body["urgency"] == "low"
    assert body["reply_text"] == "Monday at 10am works."
    assert body["ai_confidence"] == 0.92

    sent = requests[0]
    assert sent["response_format"] == {"type": "json_object"}
    assert sent["messages"][0]["content"] == default_system_prompt("HOSPITAL")
    assert sent["messages"][1]["content"] == "Can I book a cleaning on Monday?"


def test_industry_config_prompt_overrides_default(
    db_session: Session,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    db_session.add(
        IndustryConfig(
            industry="DENTAL",
            system_prompt="You triage dental questions.",
            default_templates=[],
            settings={},
        )
    )
    db_session.commit()
    requests = _install_client(monkeypatch, lambda request: httpx.Response(200, json=_completion('{"type": "pricing"}')))

    result = ai_service.analyze(db_session, "How much is an implant?", "DENTAL", context="Returning patient")

    assert result.type == "pricing"
    assert result.summary == "How much is an implant?"
    assert result.confidence == 0.8
    assert requests[0]["messages"][0]["content"] == "You triage dental questions."
    assert requests[0]["messages"][1]["content"] == "Returning patient\n\nHow much is an implant?"


def test_upstream_failures_fall_back(db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_client(monkeypatch, lambda request: httpx.Response(500, json={"error": "boom"}))

    assert ai_service.analyze(db_session, "Hi", "OTHER").type == FALLBACK_TYPE
    assert ai_service.generate_reply("Hi", "OTHER") == FALLBACK_REPLY
    assert ai_service.classify("Hi") == FALLBACK_CLASSIFICATION


def test_non_json_analysis_falls_back(db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    _install_client(monkeypatch, lambda request: httpx.Response(200, json=_completion("not json at all")))

    result = ai_service.analyze(db_session, "Hi", "OTHER")
    assert result.type == FALLBACK_TYPE
    assert result.suggested_reply == FALLBACK_REPLY


def test_generate_reply_and_classify(client: TestClient, tenant: Tenant, monkeypatch: pytest.MonkeyPatch) -> None:
    requests = _install_client(monkeypatch, lambda request: httpx.Response(200, json=_completion(" pricing \n")))

    classification = client.post("/ai/classify", json={"message": "How much?"}, headers=tenant.headers)
    assert classification.json() == {"classification": "pricing"}
    assert requests[0]["max_tokens"] == 10

    reply = client.post(
        "/ai/generate-reply",
        json={"message": "How much?", "industry_type": "REAL_ESTATE"},
        headers=tenant.headers,
    )
    assert reply.json() == {"reply": " pricing \n"}
    assert "real estate agency" in requests[1]["messages"][0]["content"]


def test_client_reports_malformed_payload() -> None:
    client = OpenAiClient(
        "sk-test",
        client=httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"choices": []}))),
    )
    with pytest.raises(OpenAiError, match="malformed"):
        client.chat("gpt-4o-mini", [{"role": "user", "content": "Hi"}])


def test_default_prompts_follow_industry() -> None:
    assert "clinic" in default_system_prompt("DERMATOLOGY")
    assert "property_type" in default_system_prompt("REAL_ESTATE")
    assert "for a business" in default_system_prompt("ACADEMY")
