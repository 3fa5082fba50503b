from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from inquaire.business.businesses.schemas import IndustryType
from inquaire.business.industry_configs.schemas import (
    IndustryConfigCreate,
    IndustryConfigList,
    IndustryConfigRead,
    IndustryConfigUpdate,
)
from inquaire.business.industry_configs.service import industry_configs_service
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.core.rbac import require_system_admin


router = APIRouter(prefix="/industry-configs", tags=["industry-configs"])


@router.post("", response_model=IndustryConfigRead, status_code=status.HTTP_201_CREATED)
def create_industry_config(
    payload: IndustryConfigCreate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> IndustryConfigRead:
    return industry_configs_service.create_config(db, payload)


@router.get("", response_model=IndustryConfigList)
def list_industry_configs(
    industry: IndustryType | None = Query(default=None),
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_authenticated_user),
) -> IndustryConfigList:
    return industry_configs_service.list_configs(db, industry)


@router.get("/industry/{industry}", response_model=IndustryConfigRead)
def get_industry_config_by_industry(
    industry: IndustryType,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_authenticated_user),
) -> IndustryConfigRead:
    return industry_configs_service.find_by_industry(db, industry)


@router.get("/{config_id}", response_model=IndustryConfigRead)
def get_industry_config(
    config_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_authenticated_user),
) -> IndustryConfigRead:
    return industry_configs_service.get_config(db, config_id)


@router.patch("/{config_id}", response_model=IndustryConfigRead)
def update_industry_config(
    config_id: uuid.UUID,
    payload: IndustryConfigUpdate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> IndustryConfigRead:
    return industry_configs_service.update_config(db, config_id, payload)


@router.delete("/{config_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_industry_config(
    config_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> Response:
    industry_configs_service.delete_config(db, config_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
