from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from inquaire.context import get_correlation_id
from inquaire.core.celery_app import celery_app
from inquaire.core.config import get_settings

logger = logging.getLogger("inquaire.jobs")

ANALYZE_INQUIRY = "inquaire.tasks.analyze_inquiry"
RETRY_WEBHOOK = "inquaire.tasks.retry_webhook"

queued_jobs: list[dict[str, Any]] = []


def enqueue(job_name: str, args: list[Any], *, countdown: int | None = None) -> str:
    """Hand a job to the Celery broker, or keep it in-process when no broker is configured."""

    settings = get_settings()
    job_id = str(uuid.uuid4())
    record = {
        "job_id": job_id,
        "job_name": job_name,
        "args": args,
        "countdown": countdown,
        "correlation_id": get_correlation_id(),
        "queued_at": datetime.now(timezone.utc).isoformat(),
    }
    if settings.celery_enabled:
        celery_app.send_task(job_name, args=args, countdown=countdown, task_id=job_id)
        record["status"] = "sent"
    else:
        record["status"] = "queued_in_process"
    queued_jobs.append(record)
    logger.info("job.enqueued", extra={"job_name": job_name, "job_id": job_id, "status": record["status"]})
    return job_id
