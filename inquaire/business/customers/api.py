from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.business.customers.schemas import (
    CustomerCreate,
    CustomerDetail,
    CustomerMergeRequest,
    CustomerRead,
    CustomerSortField,
    CustomerStats,
    CustomerUpdate,
    MessageResponse,
    SortOrder,
)
from inquaire.business.customers.service import customers_service
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.core.pagination import PageParams, PaginatedResponse, page_params
from inquaire.platform.security.guard import check_resource_access, ensure_business_access, require_resource_access


router = APIRouter(prefix="/customers", tags=["customers"])


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CustomerCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> CustomerRead:
    ensure_business_access(db, user.user_id, payload.business_id)
    return customers_service.create_customer(db, payload)


@router.get("", response_model=PaginatedResponse[CustomerRead])
def list_customers(
    business_id: uuid.UUID | None = Query(default=None),
    platform: str | None = Query(default=None),
    search: str | None = Query(default=None),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    tag: str | None = Query(default=None),
    sort_by: CustomerSortField = Query(default="last_contact"),
    sort_order: SortOrder = Query(default="desc"),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> PaginatedResponse[CustomerRead]:
    return customers_service.list_customers(
        db,
        user.user_id,
        params,
        business_id=business_id,
        platform=platform,
        search=search,
        start_date=start_date,
        end_date=end_date,
        tag=tag,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/stats", response_model=CustomerStats)
def customer_stats(
    business_id: uuid.UUID = Query(),
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("business")),
) -> CustomerStats:
    return customers_service.stats(db, business_id)


@router.post("/merge", response_model=CustomerRead)
def merge_customers(
    payload: CustomerMergeRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> CustomerRead:
    check_resource_access(db, user.user_id, "customer", payload.source_customer_id)
    check_resource_access(db, user.user_id, "customer", payload.target_customer_id)
    return customers_service.merge(db, payload.source_customer_id, payload.target_customer_id)


@router.get("/{customer_id}", response_model=CustomerDetail)
def get_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("customer")),
) -> CustomerDetail:
    return customers_service.get_customer(db, customer_id)


@router.patch("/{customer_id}", response_model=CustomerRead)
def update_customer(
    customer_id: uuid.UUID,
    payload: CustomerUpdate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("customer")),
) -> CustomerRead:
    return customers_service.update_customer(db, customer_id, payload)


@router.patch("/{customer_id}/last-contact", response_model=CustomerRead)
def touch_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("customer")),
) -> CustomerRead:
    return customers_service.update_last_contact(db, customer_id)


@router.delete("/{customer_id}", response_model=MessageResponse)
def delete_customer(
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("customer")),
) -> MessageResponse:
    return customers_service.remove_customer(db, customer_id)
