from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


IndustryType = Literal[
    "HOSPITAL",
    "DENTAL",
    "DERMATOLOGY",
    "PLASTIC_SURGERY",
    "REAL_ESTATE",
    "BEAUTY_SALON",
    "ACADEMY",
    "LAW_FIRM",
    "OTHER",
]


class BusinessCreate(BaseModel):
    organization_id: UUID
    name: str = Field(min_length=1, max_length=255)
    industry_type: IndustryType = "OTHER"
    address: str | None = None
    phone: str | None = Field(default=None, max_length=32)
    website: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)


class BusinessUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    industry_type: IndustryType | None = None
    address: str | None = None
    phone: str | None = Field(default=None, max_length=32)
    website: str | None = None
    settings: dict[str, Any] | None = None


class BusinessCounts(BaseModel):
    channels: int = 0
    customers: int = 0
    inquiries: int = 0


class BusinessRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    organization_id: UUID
    name: str
    industry_type: str
    address: str | None = None
    phone: str | None = None
    website: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    counts: BusinessCounts | None = Field(default=None, alias="_count")


class InquiryWindowStats(BaseModel):
    today: int
    last_7_days: int
    last_30_days: int
    by_status: dict[str, int]
    by_sentiment: dict[str, int]


class CustomerWindowStats(BaseModel):
    total: int
    new_last_7_days: int


class TopChannel(BaseModel):
    id: UUID
    name: str
    platform: str
    inquiry_count: int


class BusinessDashboard(BaseModel):
    business_id: UUID
    inquiries: InquiryWindowStats
    customers: CustomerWindowStats
    top_channels: list[TopChannel]


class MessageResponse(BaseModel):
    message: str
