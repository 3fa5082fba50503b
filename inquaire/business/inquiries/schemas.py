from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from inquaire.business.inquiry_replies.schemas import InquiryReplyRead


InquiryStatus = Literal["NEW", "IN_PROGRESS", "COMPLETED", "ON_HOLD"]
InquirySortField = Literal["received_at", "created_at", "status", "urgency"]
SortOrder = Literal["asc", "desc"]


class InquiryCreate(BaseModel):
    business_id: UUID
    channel_id: UUID
    customer_id: UUID
    message_text: str = Field(min_length=1)
    platform_message_id: str | None = Field(default=None, max_length=255)
    extracted_info: dict[str, Any] | None = None


class InquiryUpdate(BaseModel):
    status: InquiryStatus | None = None
    notes: str | None = None
    reply_text: str | None = None
    summary: str | None = None
    type: str | None = Field(default=None, max_length=128)
    extracted_info: dict[str, Any] | None = None


class InquiryStatusUpdate(BaseModel):
    status: InquiryStatus


class SendReplyRequest(BaseModel):
    message: str = Field(min_length=1)
    sender_type: Literal["HUMAN", "AI"] = "HUMAN"


class InquiryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    channel_id: UUID
    customer_id: UUID
    platform_message_id: str | None = None
    message_text: str
    type: str | None = None
    summary: str | None = None
    extracted_info: dict[str, Any] | None = None
    sentiment: str | None = None
    urgency: str | None = None
    status: str
    reply_text: str | None = None
    replied_at: datetime | None = None
    ai_confidence: float | None = None
    ai_model: str | None = None
    ai_processing_time: int | None = None
    notes: str | None = None
    received_at: datetime
    analyzed_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class InquiryCustomer(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str | None = None
    platform: str
    platform_user_id: str
    profile_image_url: str | None = None


class InquiryChannel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    platform: str


class InquiryDetail(InquiryRead):
    customer: InquiryCustomer | None = None
    channel: InquiryChannel | None = None
    replies: list[InquiryReplyRead] = Field(default_factory=list)


class InquiryStats(BaseModel):
    business_id: UUID
    total: int
    by_status: dict[str, int]
    by_sentiment: dict[str, int]
    by_urgency: dict[str, int]
    by_type: dict[str, int]


class MessageResponse(BaseModel):
    message: str
