from contextlib import asynccontextmanager, contextmanager
import logging
from typing import Any
import uuid

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from inquaire.api.routes import router as api_router
from inquaire.business.ai.api import router as ai_router
from inquaire.business.businesses.api import router as businesses_router
from inquaire.business.channels.api import router as channels_router
from inquaire.business.customers.api import router as customers_router
from inquaire.business.industry_configs.api import router as industry_configs_router
from inquaire.business.inquiries.api import router as inquiries_router
from inquaire.business.inquiries.service import inquiries_service
from inquaire.business.inquiry_replies.api import router as inquiry_replies_router
from inquaire.business.payments.api import router as payments_router
from inquaire.business.reply_templates.api import router as reply_templates_router
from inquaire.business.subscriptions.api import router as subscriptions_router
from inquaire.business.webhooks.api import events_router as webhook_events_router
from inquaire.business.webhooks.api import router as webhooks_router
from inquaire.core.config import get_settings
from inquaire.core.context import RequestContextMiddleware
from inquaire.core.database import SessionLocal, get_db
from inquaire.core.errors import register_exception_handlers
from inquaire.core.events import InternalEvent, event_bus
from inquaire.logging import configure_logging
from inquaire.middleware.correlation_id import CorrelationIdMiddleware
from inquaire.middleware.rate_limit import MutationRateLimitMiddleware
from inquaire.middleware.request_logging import RequestLoggingMiddleware
from inquaire.otel import get_fastapi_server_request_hook, setup_otel
from inquaire.platform.error_logs.api import router as error_logs_router
from inquaire.platform.identity.api import router as auth_router
from inquaire.platform.identity.api import users_router
from inquaire.platform.organizations.api import router as organizations_router


configure_logging()
logger = logging.getLogger("inquaire.lifecycle")
_subscriptions_registered = False


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name, "event_payload": event.payload})


@contextmanager
def _session_scope():
    override = app.dependency_overrides.get(get_db) if "app" in globals() else None
    if override is None:
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()
        return

    generator = override()
    session = next(generator)
    try:
        yield session
    finally:
        try:
            next(generator)
        except StopIteration:
            pass


def _on_inquiry_created(event: InternalEvent) -> None:
    """Run analysis inline when no worker is expected to pick up the queued job."""

    if not get_settings().auto_run_jobs or not isinstance(event.payload, dict):
        return
    envelope: dict[str, Any] = event.payload
    inquiry_id_raw = envelope.get("inquiry_id")
    if not isinstance(inquiry_id_raw, str):
        return
    try:
        inquiry_id = uuid.UUID(inquiry_id_raw)
    except ValueError:
        return

    try:
        with _session_scope() as session:
            inquiries_service.analyze(session, inquiry_id)
    except Exception as exc:
        logger.exception("inquiry_auto_analysis_failed", extra={"inquiry_id": inquiry_id_raw, "error": str(exc)[:500]})


def register_event_subscriptions() -> None:
    global _subscriptions_registered
    if _subscriptions_registered:
        return
    event_bus.subscribe("system.started", _on_system_started)
    event_bus.subscribe("inquiry.created", _on_inquiry_created)
    _subscriptions_registered = True


@asynccontextmanager
async def lifespan(app: FastAPI):
    register_event_subscriptions()
    event_bus.publish("system.started", {"service": "api"})
    yield


settings = get_settings()

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.add_middleware(MutationRateLimitMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

app.include_router(api_router)
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(organizations_router)
app.include_router(businesses_router)
app.include_router(channels_router)
app.include_router(customers_router)
app.include_router(inquiries_router)
app.include_router(inquiry_replies_router)
app.include_router(reply_templates_router)
app.include_router(industry_configs_router)
app.include_router(subscriptions_router)
app.include_router(payments_router)
app.include_router(webhooks_router)
app.include_router(webhook_events_router)
app.include_router(error_logs_router)
app.include_router(ai_router)

setup_otel()

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
