from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.industry_configs.models import IndustryConfig
from inquaire.business.industry_configs.repository import IndustryConfigRepository
from inquaire.business.industry_configs.schemas import (
    IndustryConfigCreate,
    IndustryConfigList,
    IndustryConfigRead,
    IndustryConfigUpdate,
)
from inquaire.core.errors import duplicate, not_found


@dataclass(slots=True)
class IndustryConfigsService:
    repository: IndustryConfigRepository = IndustryConfigRepository()

    def create_config(self, session: Session, payload: IndustryConfigCreate) -> IndustryConfigRead:
        if self.repository.get_by_industry(session, payload.industry) is not None:
            raise duplicate("IndustryConfig", "industry", payload.industry)
        config = IndustryConfig(**payload.model_dump())
        session.add(config)
        session.commit()
        session.refresh(config)
        events.publish({"event_type": "industry_config.created", "industry": config.industry})
        return IndustryConfigRead.model_validate(config)

    def list_configs(self, session: Session, industry: str | None = None) -> IndustryConfigList:
        stmt = self.repository.query()
        if industry:
            stmt = stmt.where(IndustryConfig.industry == industry)
        rows = session.scalars(stmt.order_by(IndustryConfig.created_at.desc())).all()
        return IndustryConfigList(data=[IndustryConfigRead.model_validate(row) for row in rows], total=len(rows))

    def get_config(self, session: Session, config_id: uuid.UUID) -> IndustryConfigRead:
        return IndustryConfigRead.model_validate(self.repository.get_or_raise(session, config_id))

    def find_by_industry(self, session: Session, industry: str) -> IndustryConfigRead:
        config = self.repository.get_by_industry(session, industry)
        if config is None:
            raise not_found("IndustryConfig", industry)
        return IndustryConfigRead.model_validate(config)

    def update_config(self, session: Session, config_id: uuid.UUID, payload: IndustryConfigUpdate) -> IndustryConfigRead:
        config = self.repository.get_or_raise(session, config_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(config, key, value)
        session.add(config)
        session.commit()
        session.refresh(config)
        return IndustryConfigRead.model_validate(config)

    def delete_config(self, session: Session, config_id: uuid.UUID) -> None:
        config = self.repository.get_or_raise(session, config_id)
        session.delete(config)
        session.commit()


industry_configs_service = IndustryConfigsService()
