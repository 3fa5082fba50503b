from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from inquaire.business.businesses.schemas import IndustryType


class IndustryConfigCreate(BaseModel):
    industry: IndustryType
    system_prompt: str = Field(min_length=1)
    default_templates: list[dict[str, Any]] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)


class IndustryConfigUpdate(BaseModel):
    system_prompt: str | None = Field(default=None, min_length=1)
    default_templates: list[dict[str, Any]] | None = None
    settings: dict[str, Any] | None = None


class IndustryConfigRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    industry: str
    system_prompt: str
    default_templates: list[dict[str, Any]] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class IndustryConfigList(BaseModel):
    data: list[IndustryConfigRead]
    total: int
