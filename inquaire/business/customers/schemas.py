from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field


CustomerSortField = Literal["last_contact", "first_contact", "inquiry_count", "created_at", "name"]
SortOrder = Literal["asc", "desc"]


class CustomerCreate(BaseModel):
    business_id: UUID
    platform: Literal["KAKAO", "LINE", "INSTAGRAM", "NAVER_TALK", "WEB_CHAT"]
    platform_user_id: str = Field(min_length=1, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    email: EmailStr | None = None
    profile_image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class CustomerUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=32)
    email: EmailStr | None = None
    profile_image_url: str | None = None
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None


class CustomerRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    platform: str
    platform_user_id: str
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    profile_image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
    )
    first_contact: datetime
    last_contact: datetime
    inquiry_count: int
    created_at: datetime
    updated_at: datetime


class CustomerInquirySummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    message_text: str
    type: str | None = None
    status: str
    sentiment: str | None = None
    urgency: str | None = None
    received_at: datetime


class CustomerDetail(CustomerRead):
    recent_inquiries: list[CustomerInquirySummary] = Field(default_factory=list)


class CustomerMergeRequest(BaseModel):
    source_customer_id: UUID
    target_customer_id: UUID


class CustomerStats(BaseModel):
    business_id: UUID
    total: int
    by_platform: dict[str, int]
    new_last_7_days: int


class MessageResponse(BaseModel):
    message: str
