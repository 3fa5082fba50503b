from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ReplyTemplateCreate(BaseModel):
    business_id: UUID
    name: str = Field(min_length=1, max_length=255)
    type: str = Field(min_length=1, max_length=128)
    content: str = Field(min_length=1)
    variables: list[str] = Field(default_factory=list)
    is_active: bool = True


class ReplyTemplateUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    type: str | None = Field(default=None, min_length=1, max_length=128)
    content: str | None = Field(default=None, min_length=1)
    variables: list[str] | None = None
    is_active: bool | None = None


class ReplyTemplateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    name: str
    type: str
    content: str
    variables: list[str] = Field(default_factory=list)
    is_active: bool
    usage_count: int
    created_at: datetime
    updated_at: datetime


class RenderTemplateRequest(BaseModel):
    values: dict[str, str] = Field(default_factory=dict)


class RenderedTemplate(BaseModel):
    template_id: UUID
    content: str
    missing_variables: list[str] = Field(default_factory=list)


class MessageResponse(BaseModel):
    message: str
