from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

from fastapi import Depends, Request
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from inquaire.business.businesses.models import Business
from inquaire.business.channels.models import Channel
from inquaire.business.customers.models import Customer
from inquaire.business.inquiries.models import Inquiry
from inquaire.core.auth import AuthUser, get_current_user
from inquaire.core.database import get_db
from inquaire.core.errors import BusinessException, ErrorCode, access_denied, not_found
from inquaire.platform.organizations.models import Organization, OrganizationMember

logger = logging.getLogger("inquaire.security")

RESOURCE_MODELS: dict[str, Any] = {
    "inquiry": Inquiry,
    "customer": Customer,
    "channel": Channel,
    "business": Business,
}

DEFAULT_PARAMS = {
    "inquiry": "inquiry_id",
    "customer": "customer_id",
    "channel": "channel_id",
    "business": "business_id",
}


def organization_for_resource(session: Session, resource_type: str, resource_id: uuid.UUID) -> uuid.UUID | None:
    """Resolve the owning organization of a non-deleted resource through its business."""

    if resource_type == "business":
        stmt = select(Business.organization_id).where(Business.id == resource_id, Business.deleted_at.is_(None))
        return session.scalar(stmt)

    model = RESOURCE_MODELS[resource_type]
    stmt = (
        select(Business.organization_id)
        .join(model, model.business_id == Business.id)
        .where(model.id == resource_id, model.deleted_at.is_(None), Business.deleted_at.is_(None))
    )
    return session.scalar(stmt)


def is_member(session: Session, organization_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    stmt = (
        select(OrganizationMember.id)
        .join(Organization, Organization.id == OrganizationMember.organization_id)
        .where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
            OrganizationMember.deleted_at.is_(None),
            Organization.deleted_at.is_(None),
        )
    )
    return session.scalar(stmt) is not None


def check_resource_access(session: Session, user_id: uuid.UUID, resource_type: str, resource_id: Any) -> None:
    try:
        parsed_id = resource_id if isinstance(resource_id, uuid.UUID) else uuid.UUID(str(resource_id))
        organization_id = organization_for_resource(session, resource_type, parsed_id)
        allowed = organization_id is not None and is_member(session, organization_id, user_id)
    except (SQLAlchemyError, ValueError) as exc:
        logger.warning(
            "resource_access_check_failed",
            extra={"resource_type": resource_type, "resource_id": str(resource_id), "error": str(exc)},
        )
        raise access_denied(resource_type, resource_id) from exc

    if not allowed:
        logger.warning(
            "resource_access_denied",
            extra={"resource_type": resource_type, "resource_id": str(resource_id)},
        )
        raise access_denied(resource_type, resource_id)


def ensure_business_access(session: Session, user_id: uuid.UUID, business_id: uuid.UUID) -> None:
    """Check access to a business named in a request body; a missing business is a 404."""

    organization_id = organization_for_resource(session, "business", business_id)
    if organization_id is None:
        raise not_found("Business", business_id)
    if not is_member(session, organization_id, user_id):
        raise access_denied("business", business_id)


def accessible_business_ids(user_id: uuid.UUID) -> Select[Any]:
    """Subquery of business ids visible to ``user_id`` through active memberships."""

    return (
        select(Business.id)
        .join(OrganizationMember, OrganizationMember.organization_id == Business.organization_id)
        .join(Organization, Organization.id == Business.organization_id)
        .where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.deleted_at.is_(None),
            Organization.deleted_at.is_(None),
            Business.deleted_at.is_(None),
        )
    )


def require_resource_access(resource_type: str, param_name: str | None = None) -> Callable[..., AuthUser]:
    if resource_type not in RESOURCE_MODELS:
        raise ValueError(f"unsupported resource type: {resource_type}")
    param = param_name or DEFAULT_PARAMS[resource_type]

    def checker(
        request: Request,
        db: Session = Depends(get_db),
        user: AuthUser = Depends(get_current_user),
    ) -> AuthUser:
        if not user.is_authenticated:
            raise BusinessException(ErrorCode.AUTH_REQUIRED)
        resource_id = request.path_params.get(param) or request.query_params.get(param)
        if not resource_id:
            raise BusinessException(
                ErrorCode.VALIDATION_INVALID_INPUT,
                f"{param} is required",
                {"field": param},
            )
        check_resource_access(db, user.user_id, resource_type, resource_id)
        return user

    return checker
