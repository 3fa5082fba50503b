from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


Platform = Literal["KAKAO", "LINE", "INSTAGRAM", "NAVER_TALK", "WEB_CHAT"]


class ChannelCreate(BaseModel):
    business_id: UUID
    platform: Platform
    platform_channel_id: str = Field(min_length=1, max_length=255)
    name: str = Field(min_length=1, max_length=255)
    access_token: str | None = None
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    webhook_secret: str | None = Field(default=None, max_length=128)
    is_active: bool = True
    auto_reply_enabled: bool = False
    settings: dict[str, Any] = Field(default_factory=dict)


class ChannelUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    platform_channel_id: str | None = Field(default=None, min_length=1, max_length=255)
    webhook_secret: str | None = Field(default=None, max_length=128)
    is_active: bool | None = None
    auto_reply_enabled: bool | None = None
    settings: dict[str, Any] | None = None


class ChannelTokensUpdate(BaseModel):
    access_token: str = Field(min_length=1)
    refresh_token: str | None = None
    token_expires_at: datetime | None = None


class ChannelCounts(BaseModel):
    inquiries: int = 0


class ChannelRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    business_id: UUID
    platform: str
    platform_channel_id: str
    name: str
    webhook_url: str | None = None
    webhook_secret: str | None = None
    token_expires_at: datetime | None = None
    is_active: bool
    auto_reply_enabled: bool
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    counts: ChannelCounts | None = Field(default=None, alias="_count")


class ChannelStats(BaseModel):
    channel_id: UUID
    total: int
    by_status: dict[str, int]
    last_7_days: int


class DecryptedTokens(BaseModel):
    access_token: str | None = None
    refresh_token: str | None = None
    token_expires_at: datetime | None = None


class MessageResponse(BaseModel):
    message: str
