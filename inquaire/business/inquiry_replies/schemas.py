from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


SenderType = Literal["AI", "HUMAN", "SYSTEM"]


class InquiryReplyCreate(BaseModel):
    inquiry_id: UUID
    message_text: str = Field(min_length=1)
    sender_type: SenderType = "AI"
    sender_id: UUID | None = None
    is_sent: bool = False


class InquiryReplyUpdate(BaseModel):
    message_text: str | None = Field(default=None, min_length=1)
    is_sent: bool | None = None
    failed_reason: str | None = None


class MarkFailedRequest(BaseModel):
    reason: str = Field(min_length=1)


class InquiryReplyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    inquiry_id: UUID
    message_text: str
    sender_type: str
    sender_id: UUID | None = None
    is_sent: bool
    sent_at: datetime | None = None
    failed_reason: str | None = None
    retry_count: int
    created_at: datetime
    updated_at: datetime


class InquiryReplyList(BaseModel):
    data: list[InquiryReplyRead]
    total: int
    limit: int
    offset: int


class MessageResponse(BaseModel):
    message: str
