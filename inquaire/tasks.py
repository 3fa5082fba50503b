from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.orm import Session

from inquaire import jobs
from inquaire.business.inquiries.service import inquiries_service
from inquaire.business.webhooks.service import webhooks_service
from inquaire.context import get_correlation_id
from inquaire.core.celery_app import celery_app
from inquaire.core.database import SessionLocal
from inquaire.metrics import observe_job
from inquaire.otel import get_tracer

logger = logging.getLogger("inquaire.jobs")
tracer = get_tracer("inquaire.jobs")


@contextmanager
def _session_scope() -> Iterator[Session]:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def run_analyze_inquiry(inquiry_id: str) -> dict[str, Any]:
    started = time.perf_counter()
    try:
        with tracer.start_as_current_span("job.run") as span, _session_scope() as session:
            span.set_attribute("job_name", jobs.ANALYZE_INQUIRY)
            span.set_attribute("inquiry_id", inquiry_id)
            span.set_attribute("correlation_id", get_correlation_id() or "")
            inquiry = inquiries_service.analyze(session, uuid.UUID(inquiry_id))
    except Exception:
        observe_job("analyze_inquiry", "failed", time.perf_counter() - started)
        logger.exception("job.failed", extra={"job_name": jobs.ANALYZE_INQUIRY, "inquiry_id": inquiry_id})
        raise
    observe_job("analyze_inquiry", "succeeded", time.perf_counter() - started)
    return {"inquiry_id": str(inquiry.id), "status": inquiry.status}


def run_retry_webhook(webhook_event_id: str) -> dict[str, Any]:
    """Reprocess a stored webhook event; failures schedule the next backoff attempt."""

    started = time.perf_counter()
    try:
        with tracer.start_as_current_span("job.run") as span, _session_scope() as session:
            span.set_attribute("job_name", jobs.RETRY_WEBHOOK)
            span.set_attribute("webhook_event_id", webhook_event_id)
            span.set_attribute("correlation_id", get_correlation_id() or "")
            result = webhooks_service.reprocess(session, uuid.UUID(webhook_event_id))
    except Exception:
        observe_job("retry_webhook", "failed", time.perf_counter() - started)
        logger.warning("job.failed", extra={"job_name": jobs.RETRY_WEBHOOK, "webhook_event_id": webhook_event_id})
        raise
    observe_job("retry_webhook", "succeeded", time.perf_counter() - started)
    return result.model_dump(mode="json", exclude_none=True)


@celery_app.task(name=jobs.ANALYZE_INQUIRY)
def analyze_inquiry(inquiry_id: str) -> dict[str, Any]:
    return run_analyze_inquiry(inquiry_id)


@celery_app.task(name=jobs.RETRY_WEBHOOK)
def retry_webhook(webhook_event_id: str) -> dict[str, Any]:
    return run_retry_webhook(webhook_event_id)
