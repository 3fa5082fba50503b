from __future__ import annotations

import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.businesses.repository import BusinessRepository
from inquaire.business.channels.models import Channel
from inquaire.business.channels.repository import ChannelRepository
from inquaire.business.channels.schemas import (
    ChannelCounts,
    ChannelCreate,
    ChannelRead,
    ChannelStats,
    ChannelTokensUpdate,
    ChannelUpdate,
    DecryptedTokens,
    MessageResponse,
)
from inquaire.business.inquiries.models import Inquiry
from inquaire.core.config import get_settings
from inquaire.core.database import utcnow
from inquaire.core.encryption import EncryptionError, decrypt, encrypt
from inquaire.core.errors import BusinessException, ErrorCode, not_allowed
from inquaire.platform.security.guard import accessible_business_ids

logger = logging.getLogger("inquaire.channels")

OPEN_INQUIRY_STATUSES = ("NEW", "IN_PROGRESS")
DEFAULT_TOKEN_LIFETIME_DAYS = 30


def build_webhook_url(platform: str, channel_id: uuid.UUID) -> str:
    base = get_settings().webhook_base_url.rstrip("/")
    return f"{base}/webhooks/{platform.lower().replace('_', '-')}/{channel_id}"


def _seal(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return encrypt(value)
    except EncryptionError as exc:
        raise BusinessException(ErrorCode.SYSTEM_CONFIGURATION_ERROR, str(exc)) from exc


def _unseal(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return decrypt(value)
    except EncryptionError as exc:
        raise BusinessException(ErrorCode.SYSTEM_CONFIGURATION_ERROR, str(exc)) from exc


@dataclass(slots=True)
class ChannelsService:
    channel_repository: ChannelRepository = ChannelRepository()
    business_repository: BusinessRepository = BusinessRepository()

    def create_channel(self, session: Session, payload: ChannelCreate) -> ChannelRead:
        self.business_repository.get_or_raise(session, payload.business_id)
        existing = self.channel_repository.find_by_platform_id(
            session, payload.business_id, payload.platform, payload.platform_channel_id
        )
        if existing is not None:
            raise BusinessException(
                ErrorCode.RESOURCE_CONFLICT,
                f"Channel {payload.platform_channel_id} already exists for {payload.platform}",
                {"platform": payload.platform, "platformChannelId": payload.platform_channel_id},
            )

        data = payload.model_dump()
        channel_id = uuid.uuid4()
        data["access_token"] = _seal(data["access_token"])
        data["refresh_token"] = _seal(data["refresh_token"])
        data["webhook_secret"] = data["webhook_secret"] or secrets.token_hex(32)
        channel = Channel(id=channel_id, webhook_url=build_webhook_url(payload.platform, channel_id), **data)
        session.add(channel)
        session.commit()
        session.refresh(channel)

        logger.info(
            "channel.created",
            extra={"channel_id": str(channel.id), "business_id": str(channel.business_id), "platform": channel.platform},
        )
        events.publish(
            {
                "event_type": "channel.created",
                "channel_id": str(channel.id),
                "business_id": str(channel.business_id),
                "platform": channel.platform,
            }
        )
        return self._read(session, channel)

    def list_channels(
        self,
        session: Session,
        user_id: uuid.UUID,
        *,
        business_id: uuid.UUID | None = None,
        platform: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> list[ChannelRead]:
        stmt = self.channel_repository.query().where(Channel.business_id.in_(accessible_business_ids(user_id)))
        if business_id is not None:
            stmt = stmt.where(Channel.business_id == business_id)
        if platform:
            stmt = stmt.where(Channel.platform == platform)
        if is_active is not None:
            stmt = stmt.where(Channel.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(Channel.name.ilike(pattern), Channel.platform_channel_id.ilike(pattern)))
        rows = session.scalars(stmt.order_by(Channel.created_at.desc())).all()
        return [self._read(session, row) for row in rows]

    def get_channel(self, session: Session, channel_id: uuid.UUID) -> ChannelRead:
        return self._read(session, self.channel_repository.get_or_raise(session, channel_id))

    def update_channel(self, session: Session, channel_id: uuid.UUID, payload: ChannelUpdate) -> ChannelRead:
        channel = self.channel_repository.get_or_raise(session, channel_id)
        changes = payload.model_dump(exclude_unset=True)
        new_platform_id = changes.get("platform_channel_id")
        if new_platform_id and new_platform_id != channel.platform_channel_id:
            clash = self.channel_repository.find_by_platform_id(session, channel.business_id, channel.platform, new_platform_id)
            if clash is not None:
                raise BusinessException(
                    ErrorCode.RESOURCE_CONFLICT,
                    f"Channel {new_platform_id} already exists for {channel.platform}",
                    {"platform": channel.platform, "platformChannelId": new_platform_id},
                )
        for key, value in changes.items():
            if value is not None:
                setattr(channel, key, value)
        session.add(channel)
        session.commit()
        session.refresh(channel)
        return self._read(session, channel)

    def remove_channel(self, session: Session, channel_id: uuid.UUID) -> MessageResponse:
        channel = self.channel_repository.get_or_raise(session, channel_id)
        open_inquiries = session.scalar(
            select(func.count(Inquiry.id)).where(
                Inquiry.channel_id == channel_id,
                Inquiry.deleted_at.is_(None),
                Inquiry.status.in_(OPEN_INQUIRY_STATUSES),
            )
        )
        if open_inquiries:
            raise not_allowed(
                "Cannot delete channel with open inquiries",
                {"channelId": str(channel_id), "openInquiries": open_inquiries},
            )
        channel.is_active = False
        self.channel_repository.soft_delete(session, channel)
        session.commit()

        events.publish({"event_type": "channel.deleted", "channel_id": str(channel_id)})
        return MessageResponse(message="Channel deleted successfully")

    def toggle_active(self, session: Session, channel_id: uuid.UUID) -> ChannelRead:
        channel = self.channel_repository.get_or_raise(session, channel_id)
        channel.is_active = not channel.is_active
        return self._save(session, channel)

    def toggle_auto_reply(self, session: Session, channel_id: uuid.UUID) -> ChannelRead:
        channel = self.channel_repository.get_or_raise(session, channel_id)
        channel.auto_reply_enabled = not channel.auto_reply_enabled
        return self._save(session, channel)

    def stats(self, session: Session, channel_id: uuid.UUID) -> ChannelStats:
        self.channel_repository.get_or_raise(session, channel_id)
        scope = (Inquiry.channel_id == channel_id, Inquiry.deleted_at.is_(None))
        total = session.scalar(select(func.count(Inquiry.id)).where(*scope)) or 0
        by_status = dict(
            session.execute(select(Inquiry.status, func.count(Inquiry.id)).where(*scope).group_by(Inquiry.status)).all()
        )
        recent = session.scalar(
            select(func.count(Inquiry.id)).where(*scope, Inquiry.received_at >= utcnow() - timedelta(days=7))
        )
        return ChannelStats(channel_id=channel_id, total=total, by_status=by_status, last_7_days=recent or 0)

    def regenerate_webhook(self, session: Session, channel_id: uuid.UUID) -> ChannelRead:
        channel = self.channel_repository.get_or_raise(session, channel_id)
        channel.webhook_url = build_webhook_url(channel.platform, channel.id)
        channel.webhook_secret = secrets.token_hex(32)
        logger.info("channel.webhook_regenerated", extra={"channel_id": str(channel.id)})
        return self._save(session, channel)

    def update_tokens(self, session: Session, channel_id: uuid.UUID, payload: ChannelTokensUpdate) -> ChannelRead:
        channel = self.channel_repository.get_or_raise(session, channel_id)
        channel.access_token = _seal(payload.access_token)
        if payload.refresh_token:
            channel.refresh_token = _seal(payload.refresh_token)
        channel.token_expires_at = payload.token_expires_at or utcnow() + timedelta(days=DEFAULT_TOKEN_LIFETIME_DAYS)
        return self._save(session, channel)

    def get_decrypted_tokens(self, session: Session, channel_id: uuid.UUID) -> DecryptedTokens:
        channel = self.channel_repository.get_or_raise(session, channel_id)
        return DecryptedTokens(
            access_token=_unseal(channel.access_token),
            refresh_token=_unseal(channel.refresh_token),
            token_expires_at=channel.token_expires_at,
        )

    def _save(self, session: Session, channel: Channel) -> ChannelRead:
        session.add(channel)
        session.commit()
        session.refresh(channel)
        return self._read(session, channel)

    @staticmethod
    def _read(session: Session, channel: Channel) -> ChannelRead:
        inquiries = session.scalar(
            select(func.count(Inquiry.id)).where(Inquiry.channel_id == channel.id, Inquiry.deleted_at.is_(None))
        )
        return ChannelRead.model_validate(channel).model_copy(update={"counts": ChannelCounts(inquiries=inquiries or 0)})


channels_service = ChannelsService()
