from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


SubscriptionPlan = Literal["TRIAL", "BASIC", "PRO", "ENTERPRISE"]
SubscriptionStatus = Literal["TRIAL", "ACTIVE", "PAST_DUE", "CANCELED", "EXPIRED"]


class SubscriptionCreate(BaseModel):
    business_id: UUID
    plan: SubscriptionPlan
    monthly_limit: int = Field(ge=0)
    trial_ends_at: datetime | None = None


class SubscriptionUpdate(BaseModel):
    plan: SubscriptionPlan | None = None
    status: SubscriptionStatus | None = None
    monthly_limit: int | None = Field(default=None, ge=0)
    trial_ends_at: datetime | None = None


class UsageIncrement(BaseModel):
    amount: int = Field(default=1, ge=1)


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    plan: str
    status: str
    monthly_limit: int
    current_usage: int
    billing_cycle_start: datetime
    billing_cycle_end: datetime
    trial_ends_at: datetime | None = None
    canceled_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class SubscriptionList(BaseModel):
    data: list[SubscriptionRead]
    total: int
    limit: int
    offset: int


class SubscriptionStats(BaseModel):
    total: int
    by_plan: dict[str, int]
    by_status: dict[str, int]
