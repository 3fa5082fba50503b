from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.business.businesses.schemas import (
    BusinessCreate,
    BusinessDashboard,
    BusinessRead,
    BusinessUpdate,
    MessageResponse,
)
from inquaire.business.businesses.service import businesses_service
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.platform.security.guard import require_resource_access


router = APIRouter(prefix="/businesses", tags=["businesses"])


@router.post("", response_model=BusinessRead, status_code=status.HTTP_201_CREATED)
def create_business(
    payload: BusinessCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> BusinessRead:
    return businesses_service.create_business(db, user.user_id, payload)


@router.get("", response_model=list[BusinessRead])
def list_businesses(
    organization_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> list[BusinessRead]:
    return businesses_service.list_businesses(db, user.user_id, organization_id)


@router.get("/{business_id}", response_model=BusinessRead)
def get_business(
    business_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("business")),
) -> BusinessRead:
    return businesses_service.get_business(db, business_id)


@router.get("/{business_id}/dashboard", response_model=BusinessDashboard)
def business_dashboard(
    business_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("business")),
) -> BusinessDashboard:
    return businesses_service.dashboard(db, business_id)


@router.patch("/{business_id}", response_model=BusinessRead)
def update_business(
    business_id: uuid.UUID,
    payload: BusinessUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_resource_access("business")),
) -> BusinessRead:
    return businesses_service.update_business(db, user.user_id, business_id, payload)


@router.delete("/{business_id}", response_model=MessageResponse)
def delete_business(
    business_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_resource_access("business")),
) -> MessageResponse:
    return businesses_service.remove_business(db, user.user_id, business_id)
