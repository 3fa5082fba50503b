from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.business.reply_templates.schemas import (
    MessageResponse,
    RenderedTemplate,
    RenderTemplateRequest,
    ReplyTemplateCreate,
    ReplyTemplateRead,
    ReplyTemplateUpdate,
)
from inquaire.business.reply_templates.service import reply_templates_service
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.core.pagination import PageParams, PaginatedResponse, page_params
from inquaire.platform.security.guard import check_resource_access, ensure_business_access


router = APIRouter(prefix="/reply-templates", tags=["reply-templates"])


def _require_template_access(db: Session, user: AuthUser, template_id: uuid.UUID) -> None:
    template = reply_templates_service.get_template(db, template_id)
    check_resource_access(db, user.user_id, "business", template.business_id)


@router.post("", response_model=ReplyTemplateRead, status_code=status.HTTP_201_CREATED)
def create_reply_template(
    payload: ReplyTemplateCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> ReplyTemplateRead:
    ensure_business_access(db, user.user_id, payload.business_id)
    return reply_templates_service.create_template(db, payload)


@router.get("", response_model=PaginatedResponse[ReplyTemplateRead])
def list_reply_templates(
    business_id: uuid.UUID | None = Query(default=None),
    type: str | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> PaginatedResponse[ReplyTemplateRead]:
    return reply_templates_service.list_templates(
        db,
        user.user_id,
        params,
        business_id=business_id,
        type=type,
        is_active=is_active,
        search=search,
    )


@router.get("/{template_id}", response_model=ReplyTemplateRead)
def get_reply_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> ReplyTemplateRead:
    _require_template_access(db, user, template_id)
    return reply_templates_service.get_template(db, template_id)


@router.patch("/{template_id}", response_model=ReplyTemplateRead)
def update_reply_template(
    template_id: uuid.UUID,
    payload: ReplyTemplateUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> ReplyTemplateRead:
    _require_template_access(db, user, template_id)
    return reply_templates_service.update_template(db, template_id, payload)


@router.delete("/{template_id}", response_model=MessageResponse)
def delete_reply_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> MessageResponse:
    _require_template_access(db, user, template_id)
    return reply_templates_service.remove_template(db, template_id)


@router.post("/{template_id}/use", response_model=ReplyTemplateRead)
def use_reply_template(
    template_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> ReplyTemplateRead:
    _require_template_access(db, user, template_id)
    return reply_templates_service.increment_usage(db, template_id)


@router.post("/{template_id}/render", response_model=RenderedTemplate)
def render_reply_template(
    template_id: uuid.UUID,
    payload: RenderTemplateRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> RenderedTemplate:
    _require_template_access(db, user, template_id)
    return reply_templates_service.render(db, template_id, payload.values)
