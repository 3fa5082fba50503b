from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.business.payments.schemas import (
    PaymentConfirm,
    PaymentCreate,
    PaymentList,
    PaymentRead,
    PaymentStats,
    PaymentStatus,
    PaymentUpdate,
)
from inquaire.business.payments.service import payments_service
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.core.rbac import require_system_admin
from inquaire.platform.security.guard import check_resource_access


router = APIRouter(prefix="/payments", tags=["payments"])


def _require_payment_access(db: Session, user: AuthUser, payment_id: uuid.UUID) -> None:
    payment = payments_service.get_payment(db, payment_id)
    check_resource_access(db, user.user_id, "business", payment.business_id)


@router.post("", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> PaymentRead:
    return payments_service.create_payment(db, payload, user.user_id)


@router.get("", response_model=PaymentList)
def list_payments(
    payment_status: PaymentStatus | None = Query(default=None, alias="status"),
    business_id: uuid.UUID | None = Query(default=None),
    subscription_id: uuid.UUID | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> PaymentList:
    return payments_service.list_payments(
        db,
        user.user_id,
        status=payment_status,
        business_id=business_id,
        subscription_id=subscription_id,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=PaymentStats)
def payment_stats(
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> PaymentStats:
    return payments_service.stats(db)


@router.get("/{payment_id}", response_model=PaymentRead)
def get_payment(
    payment_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> PaymentRead:
    _require_payment_access(db, user, payment_id)
    return payments_service.get_payment(db, payment_id)


@router.patch("/{payment_id}", response_model=PaymentRead)
def update_payment(
    payment_id: uuid.UUID,
    payload: PaymentUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> PaymentRead:
    _require_payment_access(db, user, payment_id)
    return payments_service.update_payment(db, payment_id, payload)


@router.post("/{payment_id}/confirm", response_model=PaymentRead)
def confirm_payment(
    payment_id: uuid.UUID,
    payload: PaymentConfirm,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> PaymentRead:
    _require_payment_access(db, user, payment_id)
    return payments_service.confirm(db, payment_id, payload.payment_key)
