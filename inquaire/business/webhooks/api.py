from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from inquaire.business.webhooks.schemas import (
    WebhookEventList,
    WebhookEventRead,
    WebhookEventStats,
    WebhookResult,
    WebhookRetryResponse,
)
from inquaire.business.webhooks.service import webhook_events_service, webhooks_service
from inquaire.business.webhooks.signatures import (
    verify_instagram_signature,
    verify_line_signature,
    verify_optional_signature,
)
from inquaire.core.config import get_settings
from inquaire.core.database import get_db
from inquaire.core.errors import BusinessException, ErrorCode
from inquaire.core.rbac import require_system_admin
from inquaire.metrics import observe_webhook_rejection

logger = logging.getLogger("inquaire.webhooks")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])
events_router = APIRouter(
    prefix="/webhook-events",
    tags=["webhook-events"],
    dependencies=[Depends(require_system_admin)],
)


async def raw_body(request: Request) -> bytes:
    return await request.body()


def _parse(platform: str, body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(body or b"{}")
    except ValueError as exc:
        observe_webhook_rejection(platform, "invalid_json")
        raise BusinessException(ErrorCode.VALIDATION_INVALID_FORMAT, "Webhook body is not valid JSON") from exc
    if not isinstance(payload, dict):
        observe_webhook_rejection(platform, "invalid_json")
        raise BusinessException(ErrorCode.VALIDATION_INVALID_FORMAT, "Webhook body must be a JSON object")
    return payload


def _reject_signature(platform: str, channel_id: uuid.UUID) -> BusinessException:
    observe_webhook_rejection(platform, "invalid_signature")
    logger.warning("webhook.invalid_signature", extra={"platform": platform, "channel_id": str(channel_id)})
    return BusinessException(ErrorCode.AUTH_INVALID_TOKEN, "Invalid webhook signature", {"platform": platform})


@router.post("/kakao/{channel_id}", response_model=WebhookResult, response_model_exclude_none=True)
def kakao_webhook(
    channel_id: uuid.UUID,
    body: bytes = Depends(raw_body),
    signature: str | None = Header(default=None, alias="x-kakao-signature"),
    db: Session = Depends(get_db),
) -> WebhookResult:
    if not verify_optional_signature("KAKAO", body, signature, get_settings().kakao_webhook_secret):
        raise _reject_signature("KAKAO", channel_id)
    return webhooks_service.handle(db, "KAKAO", channel_id, _parse("KAKAO", body), raw_body=body)


@router.post("/line/{channel_id}", response_model=WebhookResult, response_model_exclude_none=True)
def line_webhook(
    channel_id: uuid.UUID,
    body: bytes = Depends(raw_body),
    signature: str | None = Header(default=None, alias="x-line-signature"),
    db: Session = Depends(get_db),
) -> WebhookResult:
    if not verify_line_signature(body, signature, get_settings().line_channel_secret):
        raise _reject_signature("LINE", channel_id)
    return webhooks_service.handle(db, "LINE", channel_id, _parse("LINE", body), raw_body=body)


@router.post("/naver-talk/{channel_id}", response_model=WebhookResult, response_model_exclude_none=True)
def naver_talk_webhook(
    channel_id: uuid.UUID,
    body: bytes = Depends(raw_body),
    signature: str | None = Header(default=None, alias="x-naver-signature"),
    db: Session = Depends(get_db),
) -> WebhookResult:
    if not verify_optional_signature("NAVER_TALK", body, signature, get_settings().naver_talk_secret):
        raise _reject_signature("NAVER_TALK", channel_id)
    return webhooks_service.handle(db, "NAVER_TALK", channel_id, _parse("NAVER_TALK", body), raw_body=body)


@router.get("/instagram/{channel_id}", response_class=PlainTextResponse)
def verify_instagram_webhook(
    channel_id: uuid.UUID,
    mode: str | None = Query(default=None, alias="hub.mode"),
    verify_token: str | None = Query(default=None, alias="hub.verify_token"),
    challenge: str | None = Query(default=None, alias="hub.challenge"),
    db: Session = Depends(get_db),
) -> PlainTextResponse:
    if mode == "subscribe" and webhooks_service.verify_instagram_token(db, channel_id, verify_token):
        logger.info("webhook.verified", extra={"platform": "INSTAGRAM", "channel_id": str(channel_id)})
        return PlainTextResponse(challenge or "")
    observe_webhook_rejection("INSTAGRAM", "verification_failed")
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("/instagram/{channel_id}", response_model=WebhookResult, response_model_exclude_none=True)
def instagram_webhook(
    channel_id: uuid.UUID,
    body: bytes = Depends(raw_body),
    signature: str | None = Header(default=None, alias="x-hub-signature-256"),
    db: Session = Depends(get_db),
) -> WebhookResult:
    if not verify_instagram_signature(body, signature, get_settings().instagram_app_secret):
        raise _reject_signature("INSTAGRAM", channel_id)
    return webhooks_service.handle(db, "INSTAGRAM", channel_id, _parse("INSTAGRAM", body), raw_body=body)


@events_router.get("", response_model=WebhookEventList)
def list_webhook_events(
    channel_id: uuid.UUID | None = Query(default=None),
    event_type: str | None = Query(default=None),
    processed: bool | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
) -> WebhookEventList:
    return webhook_events_service.find_all(
        db,
        channel_id=channel_id,
        event_type=event_type,
        processed=processed,
        page=page,
        limit=limit,
    )


@events_router.get("/stats", response_model=WebhookEventStats)
def webhook_event_stats(db: Session = Depends(get_db)) -> WebhookEventStats:
    return webhook_events_service.stats(db)


@events_router.get("/{event_id}", response_model=WebhookEventRead)
def get_webhook_event(event_id: uuid.UUID, db: Session = Depends(get_db)) -> WebhookEventRead:
    return webhook_events_service.find_one(db, event_id)


@events_router.post("/{event_id}/retry", response_model=WebhookRetryResponse)
def retry_webhook_event(event_id: uuid.UUID, db: Session = Depends(get_db)) -> WebhookRetryResponse:
    return webhook_events_service.retry(db, event_id)
