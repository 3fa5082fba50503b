from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


PaymentStatus = Literal["PENDING", "COMPLETED", "FAILED", "REFUNDED"]


class PaymentCreate(BaseModel):
    business_id: UUID
    subscription_id: UUID
    amount: int = Field(ge=1)
    currency: str = Field(default="KRW", min_length=3, max_length=8)
    payment_method: str | None = Field(default=None, max_length=32)
    metadata: dict[str, Any] = Field(default_factory=dict)


class PaymentUpdate(BaseModel):
    status: PaymentStatus | None = None
    payment_method: str | None = Field(default=None, max_length=32)
    payment_key: str | None = Field(default=None, max_length=255)
    failure_reason: str | None = None
    metadata: dict[str, Any] | None = None


class PaymentConfirm(BaseModel):
    payment_key: str = Field(min_length=1, max_length=255)


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    business_id: UUID
    subscription_id: UUID
    amount: int
    currency: str
    status: str
    payment_method: str | None = None
    payment_key: str | None = None
    paid_at: datetime | None = None
    failed_at: datetime | None = None
    failure_reason: str | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("extra_metadata", "metadata"),
    )
    created_at: datetime
    updated_at: datetime


class PaymentList(BaseModel):
    data: list[PaymentRead]
    total: int
    limit: int
    offset: int


class PaymentStats(BaseModel):
    total: int
    by_status: dict[str, int]
    total_amount: int
