from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


OrganizationRole = Literal["OWNER", "ADMIN", "MANAGER", "MEMBER", "VIEWER"]
InvitableRole = Literal["ADMIN", "MANAGER", "MEMBER", "VIEWER"]


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    logo_url: str | None = None


class OrganizationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    slug: str | None = Field(default=None, min_length=3, max_length=64, pattern=r"^[a-z0-9-]+$")
    logo_url: str | None = None
    settings: dict[str, Any] | None = None


class OrganizationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    logo_url: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class OrganizationSubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    plan: str
    status: str
    monthly_limit: int
    current_usage: int
    max_businesses: int
    max_members: int
    trial_ends_at: datetime | None = None
    billing_cycle_start: datetime
    billing_cycle_end: datetime
    canceled_at: datetime | None = None


class OrganizationCounts(BaseModel):
    members: int
    businesses: int


class OrganizationListItem(OrganizationRead):
    my_role: str
    member_count: int
    business_count: int


class OrganizationDetail(OrganizationRead):
    subscription: OrganizationSubscriptionRead | None = None
    my_role: str
    my_permissions: list[str]
    counts: OrganizationCounts


class MemberUser(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    avatar_url: str | None = None


class MemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    user_id: UUID
    role: str
    permissions: list[str] = Field(default_factory=list)
    invited_by: UUID | None = None
    joined_at: datetime
    user: MemberUser | None = None


class InviteMemberRequest(BaseModel):
    email: EmailStr
    role: InvitableRole = "MEMBER"


class AcceptInvitationRequest(BaseModel):
    token: str = Field(min_length=1)


class UpdateMemberRoleRequest(BaseModel):
    role: OrganizationRole


class InvitationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: UUID
    email: str
    role: str
    invited_by: UUID
    expires_at: datetime
    accepted_at: datetime | None = None
    created_at: datetime


class PermissionCheck(BaseModel):
    permission: str
    allowed: bool
    role: str | None = None


class MessageResponse(BaseModel):
    message: str
