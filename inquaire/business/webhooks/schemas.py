from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class KakaoUserProperties(_Payload):
    nickname: str | None = None


class KakaoUser(_Payload):
    id: str | None = None
    properties: KakaoUserProperties | None = None


class KakaoWebhook(_Payload):
    type: str | None = None
    content: str | dict[str, Any] | None = None
    user_key: str | None = None
    user: KakaoUser | None = None
    event_id: str | None = None


class LineSource(_Payload):
    userId: str = "unknown"


class LineMessage(_Payload):
    id: str | None = None
    type: str | None = None
    text: str | None = None


class LineEvent(_Payload):
    type: str
    timestamp: int
    replyToken: str | None = None
    source: LineSource = Field(default_factory=LineSource)
    message: LineMessage | None = None


class LineWebhook(_Payload):
    events: list[LineEvent] = Field(default_factory=list)


class NaverUser(_Payload):
    userIdNo: str
    nickname: str | None = None


class NaverTextContent(_Payload):
    text: str | None = None


class NaverOptions(_Payload):
    inquiry: str | None = None


class NaverTalkWebhook(_Payload):
    event: str
    user: NaverUser
    textContent: NaverTextContent | None = None
    options: NaverOptions | None = None
    eventId: str | None = None


class InstagramSender(_Payload):
    id: str


class InstagramMessage(_Payload):
    mid: str | None = None
    text: str | None = None
    is_echo: bool = False
    is_deleted: bool = False


class InstagramMessaging(_Payload):
    sender: InstagramSender
    timestamp: int | None = None
    message: InstagramMessage | None = None


class InstagramEntry(_Payload):
    id: str | None = None
    messaging: list[InstagramMessaging] | None = None


class InstagramWebhook(_Payload):
    object: str | None = None
    entry: list[InstagramEntry] = Field(default_factory=list)


class ProcessedMessage(BaseModel):
    inquiry_id: UUID
    customer_id: UUID
    reply_token: str | None = None
    sender_id: str | None = None


class WebhookResult(BaseModel):
    success: bool = True
    message: str | None = None
    inquiry_id: UUID | None = None
    customer_id: UUID | None = None
    processed: int | None = None
    results: list[ProcessedMessage] | None = None


class WebhookEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    channel_id: UUID
    platform: str | None = None
    event_type: str
    payload: dict[str, Any]
    processed: bool
    processed_at: datetime | None = None
    error_message: str | None = None
    retry_count: int
    received_at: datetime
    created_at: datetime


class WebhookEventPagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class WebhookEventList(BaseModel):
    data: list[WebhookEventRead]
    pagination: WebhookEventPagination


class EventTypeCount(BaseModel):
    event_type: str
    count: int


class WebhookEventStats(BaseModel):
    total: int
    unprocessed: int
    processed: int
    failed: int
    by_event_type: list[EventTypeCount]


class WebhookRetryResponse(BaseModel):
    message: str
    event: WebhookEventRead
