from __future__ import annotations

import hashlib
import json
import logging
import math
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inquaire import events, jobs
from inquaire.business.channels.models import Channel
from inquaire.business.channels.repository import ChannelRepository
from inquaire.business.customers.service import customers_service
from inquaire.business.inquiries.models import Inquiry
from inquaire.business.inquiries.service import inquiries_service
from inquaire.business.webhooks.models import WebhookEvent
from inquaire.business.webhooks.replay import is_duplicate, is_timestamp_valid
from inquaire.business.webhooks.repository import WebhookEventRepository
from inquaire.business.webhooks.schemas import (
    EventTypeCount,
    InstagramWebhook,
    KakaoWebhook,
    LineWebhook,
    NaverTalkWebhook,
    ProcessedMessage,
    WebhookEventList,
    WebhookEventPagination,
    WebhookEventRead,
    WebhookEventStats,
    WebhookResult,
    WebhookRetryResponse,
)
from inquaire.core.config import get_settings
from inquaire.core.database import utcnow
from inquaire.core.errors import BusinessException, ErrorCode, not_found
from inquaire.metrics import observe_webhook_event
from inquaire.platform.error_logs.service import error_logs_service

logger = logging.getLogger("inquaire.webhooks")

MESSAGE_RECEIVED = "message_received"
RETRY_DELAYS_SECONDS = (60, 300, 900)
MAX_RETRY_ATTEMPTS = len(RETRY_DELAYS_SECONDS)

# Platforms whose deliveries carry no per-message id are deduplicated per delivery.
DELIVERY_DEDUPED_PLATFORMS = frozenset({"KAKAO", "NAVER_TALK"})


def delivery_id(payload: dict[str, Any], raw_body: bytes, *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if value:
            return str(value)
    body = raw_body or json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(body).hexdigest()


def _from_epoch_ms(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def _invalid(message: str, context: dict[str, Any] | None = None) -> BusinessException:
    return BusinessException(ErrorCode.VALIDATION_INVALID_INPUT, message, context)


@dataclass(slots=True)
class WebhooksService:
    channel_repository: ChannelRepository = ChannelRepository()
    event_repository: WebhookEventRepository = WebhookEventRepository()

    def handle(
        self,
        session: Session,
        platform: str,
        channel_id: uuid.UUID,
        payload: dict[str, Any],
        *,
        raw_body: bytes = b"",
    ) -> WebhookResult:
        if platform in DELIVERY_DEDUPED_PLATFORMS:
            key = delivery_id(payload, raw_body, "event_id", "eventId")
            if is_duplicate(key, platform):
                raise _invalid("Duplicate webhook event", {"platform": platform})

        event_id: uuid.UUID | None = None
        try:
            channel = self._require_channel(session, channel_id)
            event = self._record_event(session, channel, platform, payload)
            event_id = event.id
            result = self._dispatch(session, channel, platform, payload, check_replay=True)
            self._mark_processed(session, event_id)
        except Exception as exc:
            self._handle_failure(session, platform, channel_id, payload, exc, event_id)
            raise

        logger.info(
            "webhook.processed",
            extra={"platform": platform, "channel_id": str(channel_id), "processed": result.processed or 0},
        )
        return result

    def reprocess(self, session: Session, webhook_event_id: uuid.UUID) -> WebhookResult:
        """Replay a stored event without replay-window checks; used by the retry job."""

        event = self.event_repository.get_or_raise(session, webhook_event_id)
        platform = event.platform or ""
        channel_id = event.channel_id
        payload = dict(event.payload or {})
        try:
            channel = self._require_channel(session, channel_id)
            result = self._dispatch(session, channel, platform, payload, check_replay=False)
            self._mark_processed(session, webhook_event_id)
        except Exception as exc:
            self._handle_failure(session, platform, channel_id, payload, exc, webhook_event_id)
            raise
        logger.info(
            "webhook.retry_succeeded",
            extra={"platform": platform, "webhook_event_id": str(webhook_event_id), "attempt": event.retry_count},
        )
        return result

    def schedule_retry(self, session: Session, webhook_event_id: uuid.UUID) -> str | None:
        event = self.event_repository.get_or_raise(session, webhook_event_id)
        if event.retry_count >= MAX_RETRY_ATTEMPTS:
            logger.error(
                "webhook.retry_exhausted",
                extra={"webhook_event_id": str(event.id), "attempt": event.retry_count, "platform": event.platform},
            )
            return None
        event.retry_count += 1
        countdown = RETRY_DELAYS_SECONDS[event.retry_count - 1]
        session.add(event)
        session.commit()
        logger.info(
            "webhook.retry_scheduled",
            extra={"webhook_event_id": str(event.id), "attempt": event.retry_count, "countdown": countdown},
        )
        return jobs.enqueue(jobs.RETRY_WEBHOOK, [str(event.id)], countdown=countdown)

    def verify_instagram_token(self, session: Session, channel_id: uuid.UUID, verify_token: str | None) -> bool:
        if not verify_token:
            return False
        channel = self.channel_repository.get(session, channel_id)
        if channel is not None and channel.webhook_secret:
            return verify_token == channel.webhook_secret
        expected = get_settings().instagram_verify_token
        if not expected:
            logger.warning("webhook.verify_token_unconfigured", extra={"platform": "INSTAGRAM"})
            return False
        return verify_token == expected

    def _dispatch(
        self,
        session: Session,
        channel: Channel,
        platform: str,
        payload: dict[str, Any],
        *,
        check_replay: bool,
    ) -> WebhookResult:
        handlers: dict[str, Callable[..., WebhookResult]] = {
            "KAKAO": self._handle_kakao,
            "LINE": self._handle_line,
            "NAVER_TALK": self._handle_naver_talk,
            "INSTAGRAM": self._handle_instagram,
        }
        handler = handlers.get(platform)
        if handler is None:
            raise _invalid(f"Unsupported webhook platform: {platform}", {"platform": platform})
        try:
            return handler(session, channel, payload, check_replay)
        except ValidationError as exc:
            raise BusinessException(
                ErrorCode.VALIDATION_INVALID_INPUT,
                "Malformed webhook payload",
                {"platform": platform, "errors": exc.errors(include_url=False, include_context=False)},
            ) from exc

    def _handle_kakao(self, session: Session, channel: Channel, payload: dict[str, Any], check_replay: bool) -> WebhookResult:
        webhook = KakaoWebhook.model_validate(payload)
        if webhook.type not in ("text", "message"):
            logger.info("webhook.unsupported_message_type", extra={"platform": "KAKAO", "event_type": webhook.type})
            return WebhookResult(message="Message type not supported")

        content = webhook.content
        text = content if isinstance(content, str) else (content or {}).get("text")
        if not text:
            raise _invalid("Message text is empty", {"platform": "KAKAO"})

        existing = None if check_replay else self._recorded_inquiry(session, channel, webhook.event_id)
        if existing is not None:
            return WebhookResult(inquiry_id=existing.id, customer_id=existing.customer_id)

        user_id = webhook.user_key or (webhook.user.id if webhook.user else None) or "unknown"
        nickname = webhook.user.properties.nickname if webhook.user and webhook.user.properties else None
        processed = self._create_inquiry(
            session,
            channel,
            user_id,
            text,
            name=nickname,
            platform_message_id=webhook.event_id,
        )
        return WebhookResult(inquiry_id=processed.inquiry_id, customer_id=processed.customer_id)

    def _handle_line(self, session: Session, channel: Channel, payload: dict[str, Any], check_replay: bool) -> WebhookResult:
        webhook = LineWebhook.model_validate(payload)
        results: list[ProcessedMessage] = []
        for event in webhook.events:
            if check_replay:
                if not is_timestamp_valid(event.timestamp):
                    continue
                message_key = (event.message.id if event.message else None) or f"{event.source.userId}_{event.timestamp}"
                if is_duplicate(message_key, "LINE"):
                    continue
            if event.type != "message" or event.message is None or event.message.type != "text":
                continue
            if not event.message.text:
                continue
            if not check_replay and self._recorded_inquiry(session, channel, event.message.id):
                continue
            processed = self._create_inquiry(
                session,
                channel,
                event.source.userId,
                event.message.text,
                platform_message_id=event.message.id,
                received_at=_from_epoch_ms(event.timestamp),
            )
            processed.reply_token = event.replyToken
            results.append(processed)
        return WebhookResult(processed=len(results), results=results)

    def _handle_naver_talk(
        self, session: Session, channel: Channel, payload: dict[str, Any], check_replay: bool
    ) -> WebhookResult:
        webhook = NaverTalkWebhook.model_validate(payload)
        if webhook.event != "send":
            logger.info("webhook.unsupported_event", extra={"platform": "NAVER_TALK", "event_type": webhook.event})
            return WebhookResult(message="Event type not supported for inquiry creation")

        text = (webhook.textContent.text if webhook.textContent else None) or (
            webhook.options.inquiry if webhook.options else None
        )
        if not text:
            raise _invalid("Message text is empty", {"platform": "NAVER_TALK"})
        existing = None if check_replay else self._recorded_inquiry(session, channel, webhook.eventId)
        if existing is not None:
            return WebhookResult(inquiry_id=existing.id, customer_id=existing.customer_id)

        processed = self._create_inquiry(
            session,
            channel,
            webhook.user.userIdNo,
            text,
            name=webhook.user.nickname,
            platform_message_id=webhook.eventId,
        )
        return WebhookResult(inquiry_id=processed.inquiry_id, customer_id=processed.customer_id)

    def _handle_instagram(
        self, session: Session, channel: Channel, payload: dict[str, Any], check_replay: bool
    ) -> WebhookResult:
        webhook = InstagramWebhook.model_validate(payload)
        results: list[ProcessedMessage] = []
        for entry in webhook.entry:
            for messaging in entry.messaging or []:
                message = messaging.message
                if message is None or message.is_echo or message.is_deleted or not message.text:
                    continue
                if check_replay and message.mid and is_duplicate(message.mid, "INSTAGRAM"):
                    continue
                if not check_replay and self._recorded_inquiry(session, channel, message.mid):
                    continue
                processed = self._create_inquiry(
                    session,
                    channel,
                    messaging.sender.id,
                    message.text,
                    platform_message_id=message.mid,
                    received_at=_from_epoch_ms(messaging.timestamp),
                )
                processed.sender_id = messaging.sender.id
                results.append(processed)
        return WebhookResult(processed=len(results), results=results)

    def _create_inquiry(
        self,
        session: Session,
        channel: Channel,
        platform_user_id: str,
        text: str,
        *,
        name: str | None = None,
        platform_message_id: str | None = None,
        received_at: datetime | None = None,
    ) -> ProcessedMessage:
        customer = customers_service.find_or_create_by_platform_user(
            session, channel.business_id, channel.platform, platform_user_id, name=name
        )
        inquiry = inquiries_service.record_inbound(
            session,
            channel,
            customer,
            text,
            platform_message_id=platform_message_id,
            received_at=received_at,
        )
        return ProcessedMessage(inquiry_id=inquiry.id, customer_id=customer.id)

    def _recorded_inquiry(self, session: Session, channel: Channel, platform_message_id: str | None) -> Inquiry | None:
        if not platform_message_id:
            return None
        return session.scalar(
            select(Inquiry)
            .where(
                Inquiry.channel_id == channel.id,
                Inquiry.platform_message_id == platform_message_id,
                Inquiry.deleted_at.is_(None),
            )
            .limit(1)
        )

    def _require_channel(self, session: Session, channel_id: uuid.UUID) -> Channel:
        channel = self.channel_repository.get(session, channel_id)
        if channel is None:
            raise not_found("Channel", channel_id)
        return channel

    def _record_event(self, session: Session, channel: Channel, platform: str, payload: dict[str, Any]) -> WebhookEvent:
        event_type = str(payload.get("event") or MESSAGE_RECEIVED) if platform == "NAVER_TALK" else MESSAGE_RECEIVED
        event = WebhookEvent(
            channel_id=channel.id,
            platform=platform,
            event_type=event_type,
            payload=payload,
            processed=False,
            received_at=utcnow(),
        )
        session.add(event)
        session.commit()
        session.refresh(event)
        observe_webhook_event(platform, event_type)
        return event

    def _mark_processed(self, session: Session, webhook_event_id: uuid.UUID) -> None:
        event = session.get(WebhookEvent, webhook_event_id)
        if event is None:
            return
        event.processed = True
        event.processed_at = utcnow()
        event.error_message = None
        session.add(event)
        session.commit()

    def _handle_failure(
        self,
        session: Session,
        platform: str,
        channel_id: uuid.UUID,
        payload: dict[str, Any],
        exc: Exception,
        webhook_event_id: uuid.UUID | None,
    ) -> None:
        logger.error(
            "webhook.failed",
            extra={"platform": platform, "channel_id": str(channel_id), "error": str(exc)},
        )
        error_logs_service.record(
            session,
            f"{platform}_WEBHOOK",
            exc,
            context={"channelId": str(channel_id), "payload": payload},
        )
        if webhook_event_id is None:
            return
        event = session.get(WebhookEvent, webhook_event_id)
        if event is None:
            return
        event.error_message = str(exc) or type(exc).__name__
        session.add(event)
        session.commit()
        if not isinstance(exc, BusinessException):
            self.schedule_retry(session, webhook_event_id)


@dataclass(slots=True)
class WebhookEventsService:
    repository: WebhookEventRepository = WebhookEventRepository()

    def find_all(
        self,
        session: Session,
        *,
        channel_id: uuid.UUID | None = None,
        event_type: str | None = None,
        processed: bool | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> WebhookEventList:
        stmt = select(WebhookEvent)
        if channel_id is not None:
            stmt = stmt.where(WebhookEvent.channel_id == channel_id)
        if event_type:
            stmt = stmt.where(WebhookEvent.event_type == event_type)
        if processed is not None:
            stmt = stmt.where(WebhookEvent.processed == processed)

        total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = session.scalars(
            stmt.order_by(WebhookEvent.received_at.desc()).offset((page - 1) * limit).limit(limit)
        ).all()
        return WebhookEventList(
            data=[WebhookEventRead.model_validate(row) for row in rows],
            pagination=WebhookEventPagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=math.ceil(total / limit) if limit else 0,
            ),
        )

    def find_one(self, session: Session, webhook_event_id: uuid.UUID) -> WebhookEventRead:
        return WebhookEventRead.model_validate(self.repository.get_or_raise(session, webhook_event_id))

    def retry(self, session: Session, webhook_event_id: uuid.UUID) -> WebhookRetryResponse:
        event = self.repository.get_or_raise(session, webhook_event_id)
        event.retry_count += 1
        event.processed = False
        event.processed_at = None
        event.error_message = None
        session.add(event)
        session.commit()
        session.refresh(event)

        jobs.enqueue(jobs.RETRY_WEBHOOK, [str(event.id)])
        logger.info("webhook.retry_requested", extra={"webhook_event_id": str(event.id), "attempt": event.retry_count})
        events.publish(
            {"event_type": "webhook_event.retry_requested", "webhook_event_id": str(event.id), "attempt": event.retry_count}
        )
        return WebhookRetryResponse(message="Webhook event queued for retry", event=WebhookEventRead.model_validate(event))

    def stats(self, session: Session) -> WebhookEventStats:
        total = session.scalar(select(func.count(WebhookEvent.id))) or 0
        unprocessed = session.scalar(select(func.count(WebhookEvent.id)).where(WebhookEvent.processed.is_(False))) or 0
        failed = session.scalar(select(func.count(WebhookEvent.id)).where(WebhookEvent.error_message.is_not(None))) or 0
        count = func.count(WebhookEvent.id)
        by_type = session.execute(
            select(WebhookEvent.event_type, count).group_by(WebhookEvent.event_type).order_by(count.desc())
        ).all()
        return WebhookEventStats(
            total=total,
            unprocessed=unprocessed,
            processed=total - unprocessed,
            failed=failed,
            by_event_type=[EventTypeCount(event_type=event_type, count=value) for event_type, value in by_type],
        )


webhooks_service = WebhooksService()
webhook_events_service = WebhookEventsService()
