from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.business.channels.schemas import (
    ChannelCreate,
    ChannelRead,
    ChannelStats,
    ChannelTokensUpdate,
    ChannelUpdate,
    MessageResponse,
    Platform,
)
from inquaire.business.channels.service import channels_service
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.platform.security.guard import ensure_business_access, require_resource_access


router = APIRouter(prefix="/channels", tags=["channels"])


@router.post("", response_model=ChannelRead, status_code=status.HTTP_201_CREATED)
def create_channel(
    payload: ChannelCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> ChannelRead:
    ensure_business_access(db, user.user_id, payload.business_id)
    return channels_service.create_channel(db, payload)


@router.get("", response_model=list[ChannelRead])
def list_channels(
    business_id: uuid.UUID | None = Query(default=None),
    platform: Platform | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> list[ChannelRead]:
    return channels_service.list_channels(
        db,
        user.user_id,
        business_id=business_id,
        platform=platform,
        is_active=is_active,
        search=search,
    )


@router.get("/{channel_id}", response_model=ChannelRead)
def get_channel(
    channel_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("channel")),
) -> ChannelRead:
    return channels_service.get_channel(db, channel_id)


@router.patch("/{channel_id}", response_model=ChannelRead)
def update_channel(
    channel_id: uuid.UUID,
    payload: ChannelUpdate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("channel")),
) -> ChannelRead:
    return channels_service.update_channel(db, channel_id, payload)


@router.delete("/{channel_id}", response_model=MessageResponse)
def delete_channel(
    channel_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("channel")),
) -> MessageResponse:
    return channels_service.remove_channel(db, channel_id)


@router.patch("/{channel_id}/toggle-active", response_model=ChannelRead)
def toggle_channel_active(
    channel_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("channel")),
) -> ChannelRead:
    return channels_service.toggle_active(db, channel_id)


@router.patch("/{channel_id}/toggle-auto-reply", response_model=ChannelRead)
def toggle_channel_auto_reply(
    channel_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("channel")),
) -> ChannelRead:
    return channels_service.toggle_auto_reply(db, channel_id)


@router.get("/{channel_id}/stats", response_model=ChannelStats)
def channel_stats(
    channel_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("channel")),
) -> ChannelStats:
    return channels_service.stats(db, channel_id)


@router.post("/{channel_id}/regenerate-webhook", response_model=ChannelRead)
def regenerate_webhook(
    channel_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("channel")),
) -> ChannelRead:
    return channels_service.regenerate_webhook(db, channel_id)


@router.patch("/{channel_id}/tokens", response_model=ChannelRead)
def update_channel_tokens(
    channel_id: uuid.UUID,
    payload: ChannelTokensUpdate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("channel")),
) -> ChannelRead:
    return channels_service.update_tokens(db, channel_id, payload)
