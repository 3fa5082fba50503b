from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from inquaire.business.channels.models import Channel
from inquaire.platform.security.repository import BaseRepository


class ChannelRepository(BaseRepository[Channel]):
    model = Channel
    resource = "Channel"

    def find_by_platform_id(
        self,
        session: Session,
        business_id: uuid.UUID,
        platform: str,
        platform_channel_id: str,
    ) -> Channel | None:
        stmt = self.query(include_deleted=True).where(
            Channel.business_id == business_id,
            Channel.platform == platform,
            Channel.platform_channel_id == platform_channel_id,
        )
        return session.scalar(stmt)
