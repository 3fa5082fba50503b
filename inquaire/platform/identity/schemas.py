from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


SystemRole = Literal["USER", "ADMIN", "SUPER_ADMIN"]


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    name: str = Field(min_length=1, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshTokenRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str
    name: str
    role: str
    avatar_url: str | None = None
    phone: str | None = None
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class OrganizationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    slug: str
    logo_url: str | None = None


class UserOrganization(BaseModel):
    organization: OrganizationSummary
    role: str
    permissions: list[str]


class TokenResponse(BaseModel):
    user: UserRead
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int


class LoginResponse(TokenResponse):
    organizations: list[UserOrganization] = Field(default_factory=list)


class ProfileUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    avatar_url: str | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1, max_length=128)


class MessageResponse(BaseModel):
    message: str


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    name: str = Field(min_length=1, max_length=100)
    role: SystemRole = "USER"
    phone: str | None = None
    avatar_url: str | None = None


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    name: str | None = Field(default=None, min_length=1, max_length=100)
    phone: str | None = None
    avatar_url: str | None = None


class UserRoleUpdate(BaseModel):
    role: SystemRole


class UserDetail(UserRead):
    organizations: list[UserOrganization] = Field(default_factory=list)


class UserListResponse(BaseModel):
    data: list[UserRead]
    total: int
    limit: int
    offset: int


class UserStats(BaseModel):
    total: int
    by_role: dict[str, int]
    active_last_30_days: int
