from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from inquaire.business.industry_configs.models import IndustryConfig
from inquaire.platform.security.repository import BaseRepository


class IndustryConfigRepository(BaseRepository[IndustryConfig]):
    model = IndustryConfig
    resource = "IndustryConfig"

    def get_by_industry(self, session: Session, industry: str) -> IndustryConfig | None:
        return session.scalar(select(IndustryConfig).where(IndustryConfig.industry == industry))
