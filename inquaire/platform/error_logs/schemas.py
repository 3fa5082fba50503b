from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ErrorLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    error_type: str
    error_message: str
    stack_trace: str | None = None
    context: dict[str, Any] | None = None
    user_id: UUID | None = None
    correlation_id: str | None = None
    resolved: bool
    resolved_at: datetime | None = None
    created_at: datetime


class ErrorLogStats(BaseModel):
    total: int
    unresolved: int
    resolved: int
    by_type: dict[str, int]
