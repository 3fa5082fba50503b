from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from inquaire.core.database import get_db
from inquaire.core.pagination import PageParams, PaginatedResponse, page_params
from inquaire.core.rbac import require_system_admin
from inquaire.platform.error_logs.schemas import ErrorLogRead, ErrorLogStats
from inquaire.platform.error_logs.service import error_logs_service


router = APIRouter(prefix="/error-logs", tags=["error-logs"], dependencies=[Depends(require_system_admin)])


@router.get("", response_model=PaginatedResponse[ErrorLogRead])
def list_error_logs(
    error_type: str | None = Query(default=None),
    resolved: bool | None = Query(default=None),
    user_id: uuid.UUID | None = Query(default=None),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
) -> PaginatedResponse[ErrorLogRead]:
    return error_logs_service.list_logs(db, params, error_type=error_type, resolved=resolved, user_id=user_id)


@router.get("/stats", response_model=ErrorLogStats)
def error_log_stats(db: Session = Depends(get_db)) -> ErrorLogStats:
    return error_logs_service.stats(db)


@router.get("/{log_id}", response_model=ErrorLogRead)
def get_error_log(log_id: uuid.UUID, db: Session = Depends(get_db)) -> ErrorLogRead:
    return error_logs_service.get_log(db, log_id)


@router.patch("/{log_id}/resolve", response_model=ErrorLogRead)
def resolve_error_log(log_id: uuid.UUID, db: Session = Depends(get_db)) -> ErrorLogRead:
    return error_logs_service.resolve(db, log_id)
