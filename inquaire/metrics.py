from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

inquiries_created_total = Counter(
    "inquiries_created_total",
    "Total inquiries created by source platform",
    ["platform"],
)

webhook_events_total = Counter(
    "webhook_events_total",
    "Total inbound webhook events",
    ["platform", "event_type"],
)

webhook_rejections_total = Counter(
    "webhook_rejections_total",
    "Total rejected webhook deliveries by reason",
    ["platform", "reason"],
)

ai_analysis_total = Counter(
    "ai_analysis_total",
    "Total AI analyses by outcome",
    ["status"],
)

ai_analysis_duration_seconds = Histogram(
    "ai_analysis_duration_seconds",
    "AI analysis duration in seconds",
)

jobs_total = Counter(
    "jobs_total",
    "Total background jobs by status",
    ["job_name", "status"],
)

job_duration_seconds = Histogram(
    "job_duration_seconds",
    "Background job duration in seconds",
    ["job_name"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_HEX_TOKEN_RE = re.compile(r"/[0-9a-f]{32,}\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    without_tokens = _HEX_TOKEN_RE.sub("/{token}", without_uuids)
    return _INT_RE.sub("/{id}", without_tokens)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_inquiry_created(platform: str) -> None:
    inquiries_created_total.labels(platform=platform).inc()


def observe_webhook_event(platform: str, event_type: str) -> None:
    webhook_events_total.labels(platform=platform, event_type=event_type).inc()


def observe_webhook_rejection(platform: str, reason: str) -> None:
    webhook_rejections_total.labels(platform=platform, reason=reason).inc()


def observe_ai_analysis(status: str, duration: float) -> None:
    ai_analysis_total.labels(status=status).inc()
    ai_analysis_duration_seconds.observe(duration)


def observe_job(job_name: str, status: str, duration: float) -> None:
    jobs_total.labels(job_name=job_name, status=status).inc()
    job_duration_seconds.labels(job_name=job_name).observe(duration)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
