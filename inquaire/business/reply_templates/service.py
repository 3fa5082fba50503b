from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.businesses.repository import BusinessRepository
from inquaire.business.reply_templates.models import ReplyTemplate
from inquaire.business.reply_templates.repository import ReplyTemplateRepository
from inquaire.business.reply_templates.schemas import (
    MessageResponse,
    RenderedTemplate,
    ReplyTemplateCreate,
    ReplyTemplateRead,
    ReplyTemplateUpdate,
)
from inquaire.core.pagination import PageParams, PaginatedResponse, paginate
from inquaire.platform.security.guard import accessible_business_ids

logger = logging.getLogger("inquaire.reply_templates")

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z0-9_.-]+)\s*\}\}")


def template_variables(content: str) -> list[str]:
    seen: list[str] = []
    for name in _PLACEHOLDER_RE.findall(content):
        if name not in seen:
            seen.append(name)
    return seen


def render_content(content: str, values: dict[str, str]) -> tuple[str, list[str]]:
    """Substitute ``{{name}}`` placeholders; unknown names are left in place and reported."""

    missing: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in values:
            return str(values[name])
        if name not in missing:
            missing.append(name)
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_replace, content), missing


@dataclass(slots=True)
class ReplyTemplatesService:
    template_repository: ReplyTemplateRepository = ReplyTemplateRepository()
    business_repository: BusinessRepository = BusinessRepository()

    def create_template(self, session: Session, payload: ReplyTemplateCreate) -> ReplyTemplateRead:
        self.business_repository.get_or_raise(session, payload.business_id)
        data = payload.model_dump()
        if not data["variables"]:
            data["variables"] = template_variables(payload.content)
        template = ReplyTemplate(**data)
        session.add(template)
        session.commit()
        session.refresh(template)
        events.publish(
            {
                "event_type": "reply_template.created",
                "template_id": str(template.id),
                "business_id": str(template.business_id),
            }
        )
        return ReplyTemplateRead.model_validate(template)

    def list_templates(
        self,
        session: Session,
        user_id: uuid.UUID,
        params: PageParams,
        *,
        business_id: uuid.UUID | None = None,
        type: str | None = None,
        is_active: bool | None = None,
        search: str | None = None,
    ) -> PaginatedResponse[ReplyTemplateRead]:
        stmt = self.template_repository.query().where(ReplyTemplate.business_id.in_(accessible_business_ids(user_id)))
        if business_id is not None:
            stmt = stmt.where(ReplyTemplate.business_id == business_id)
        if type:
            stmt = stmt.where(ReplyTemplate.type == type)
        if is_active is not None:
            stmt = stmt.where(ReplyTemplate.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(ReplyTemplate.name.ilike(pattern), ReplyTemplate.content.ilike(pattern)))
        stmt = stmt.order_by(ReplyTemplate.usage_count.desc(), ReplyTemplate.created_at.desc(), ReplyTemplate.id)

        rows, meta = paginate(session, stmt, params)
        return PaginatedResponse[ReplyTemplateRead](
            data=[ReplyTemplateRead.model_validate(row) for row in rows],
            pagination=meta,
        )

    def get_template(self, session: Session, template_id: uuid.UUID) -> ReplyTemplateRead:
        return ReplyTemplateRead.model_validate(self.template_repository.get_or_raise(session, template_id))

    def update_template(
        self, session: Session, template_id: uuid.UUID, payload: ReplyTemplateUpdate
    ) -> ReplyTemplateRead:
        template = self.template_repository.get_or_raise(session, template_id)
        changes = payload.model_dump(exclude_unset=True)
        for key, value in changes.items():
            if value is None:
                continue
            setattr(template, key, value)
        if "content" in changes and changes["content"] is not None and not changes.get("variables"):
            template.variables = template_variables(template.content)
        session.add(template)
        session.commit()
        session.refresh(template)
        return ReplyTemplateRead.model_validate(template)

    def remove_template(self, session: Session, template_id: uuid.UUID) -> MessageResponse:
        template = self.template_repository.get_or_raise(session, template_id)
        self.template_repository.soft_delete(session, template)
        session.commit()
        return MessageResponse(message="Reply template deleted successfully")

    def increment_usage(self, session: Session, template_id: uuid.UUID) -> ReplyTemplateRead:
        template = self.template_repository.get_or_raise(session, template_id)
        session.execute(
            update(ReplyTemplate)
            .where(ReplyTemplate.id == template.id)
            .values(usage_count=ReplyTemplate.usage_count + 1)
        )
        session.commit()
        session.refresh(template)
        return ReplyTemplateRead.model_validate(template)

    def render(self, session: Session, template_id: uuid.UUID, values: dict[str, str]) -> RenderedTemplate:
        template = self.template_repository.get_or_raise(session, template_id)
        content, missing = render_content(template.content, values)
        if missing:
            logger.info(
                "reply_template.render_missing_variables",
                extra={"template_id": str(template.id), "missing_variables": missing},
            )
        return RenderedTemplate(template_id=template.id, content=content, missing_variables=missing)


reply_templates_service = ReplyTemplatesService()
