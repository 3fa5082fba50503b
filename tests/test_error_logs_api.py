from __future__ import annotations

import uuid

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inquaire.platform.error_logs.service import error_logs_service
from tests.conftest import Tenant


def _record(session: Session, error_type: str, message: str) -> uuid.UUID:
    try:
        raise RuntimeError(message)
    except RuntimeError as exc:
        entry = error_logs_service.record(session, error_type, exc, context={"source": "test"})
    return entry.id


def test_record_captures_stack_trace(db_session: Session) -> None:
    log_id = _record(db_session, "KAKAO_WEBHOOK", "upstream closed")

    entry = error_logs_service.get_log(db_session, log_id)
    assert entry.error_message == "upstream closed"
    assert "RuntimeError: upstream closed" in entry.stack_trace
    assert entry.context == {"source": "test"}
    assert entry.resolved is False


def test_admin_lists_filters_and_resolves(
    client: TestClient,
    db_session: Session,
    tenant: Tenant,
    admin_headers: dict[str, str],
) -> None:
    kakao_id = _record(db_session, "KAKAO_WEBHOOK", "first")
    _record(db_session, "LINE_WEBHOOK", "second")
    _record(db_session, "KAKAO_WEBHOOK", "third")

    assert client.get("/error-logs", headers=tenant.headers).status_code == 403

    listing = client.get("/error-logs", headers=admin_headers).json()
    assert listing["pagination"]["total"] == 3

    kakao = client.get("/error-logs", params={"error_type": "KAKAO_WEBHOOK"}, headers=admin_headers).json()
    assert {item["error_message"] for item in kakao["data"]} == {"first", "third"}

    resolved = client.patch(f"/error-logs/{kakao_id}/resolve", headers=admin_headers)
    assert resolved.status_code == 200
    assert resolved.json()["resolved"] is True
    assert resolved.json()["resolved_at"] is not None

    open_logs = client.get("/error-logs", params={"resolved": False}, headers=admin_headers).json()
    assert open_logs["pagination"]["total"] == 2

    stats = client.get("/error-logs/stats", headers=admin_headers).json()
    assert stats == {
        "total": 3,
        "unresolved": 2,
        "resolved": 1,
        "by_type": {"KAKAO_WEBHOOK": 2, "LINE_WEBHOOK": 1},
    }

    assert client.get(f"/error-logs/{kakao_id}", headers=admin_headers).json()["error_message"] == "first"
