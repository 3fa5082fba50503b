from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.business.subscriptions.schemas import (
    SubscriptionCreate,
    SubscriptionList,
    SubscriptionPlan,
    SubscriptionRead,
    SubscriptionStats,
    SubscriptionStatus,
    SubscriptionUpdate,
    UsageIncrement,
)
from inquaire.business.subscriptions.service import subscriptions_service
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.core.rbac import require_system_admin
from inquaire.platform.security.guard import check_resource_access, require_resource_access


router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


def _require_subscription_access(db: Session, user: AuthUser, subscription_id: uuid.UUID) -> None:
    subscription = subscriptions_service.get_subscription(db, subscription_id)
    check_resource_access(db, user.user_id, "business", subscription.business_id)


@router.post("", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
def create_subscription(
    payload: SubscriptionCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> SubscriptionRead:
    return subscriptions_service.create_subscription(db, payload, user.user_id)


@router.get("", response_model=SubscriptionList)
def list_subscriptions(
    plan: SubscriptionPlan | None = Query(default=None),
    subscription_status: SubscriptionStatus | None = Query(default=None, alias="status"),
    business_id: uuid.UUID | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> SubscriptionList:
    return subscriptions_service.list_subscriptions(
        db,
        user.user_id,
        plan=plan,
        status=subscription_status,
        business_id=business_id,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=SubscriptionStats)
def subscription_stats(
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> SubscriptionStats:
    return subscriptions_service.stats(db)


@router.get("/business/{business_id}", response_model=SubscriptionRead)
def get_business_subscription(
    business_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("business")),
) -> SubscriptionRead:
    return subscriptions_service.find_by_business_id(db, business_id)


@router.post("/business/{business_id}/usage", response_model=SubscriptionRead)
def increment_business_usage(
    business_id: uuid.UUID,
    payload: UsageIncrement,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("business")),
) -> SubscriptionRead:
    return subscriptions_service.increment_usage(db, business_id, payload.amount)


@router.get("/{subscription_id}", response_model=SubscriptionRead)
def get_subscription(
    subscription_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> SubscriptionRead:
    _require_subscription_access(db, user, subscription_id)
    return subscriptions_service.get_subscription(db, subscription_id)


@router.patch("/{subscription_id}", response_model=SubscriptionRead)
def update_subscription(
    subscription_id: uuid.UUID,
    payload: SubscriptionUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> SubscriptionRead:
    _require_subscription_access(db, user, subscription_id)
    return subscriptions_service.update_subscription(db, subscription_id, payload)


@router.post("/{subscription_id}/cancel", response_model=SubscriptionRead)
def cancel_subscription(
    subscription_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> SubscriptionRead:
    _require_subscription_access(db, user, subscription_id)
    return subscriptions_service.cancel(db, subscription_id)


@router.post("/{subscription_id}/reset-billing-cycle", response_model=SubscriptionRead)
def reset_billing_cycle(
    subscription_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_system_admin),
) -> SubscriptionRead:
    return subscriptions_service.reset_billing_cycle(db, subscription_id)
