from __future__ import annotations

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.businesses.repository import BusinessRepository
from inquaire.business.subscriptions.models import Subscription
from inquaire.business.subscriptions.repository import SubscriptionRepository
from inquaire.business.subscriptions.schemas import (
    SubscriptionCreate,
    SubscriptionList,
    SubscriptionRead,
    SubscriptionStats,
    SubscriptionUpdate,
)
from inquaire.core.database import utcnow
from inquaire.core.errors import BusinessException, ErrorCode, access_denied, duplicate, not_found
from inquaire.platform.security.guard import accessible_business_ids, is_member

logger = logging.getLogger("inquaire.subscriptions")


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + (month_index // 12)
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


@dataclass(slots=True)
class SubscriptionsService:
    subscription_repository: SubscriptionRepository = SubscriptionRepository()
    business_repository: BusinessRepository = BusinessRepository()

    def create_subscription(
        self, session: Session, payload: SubscriptionCreate, user_id: uuid.UUID | None = None
    ) -> SubscriptionRead:
        business = self.business_repository.get_or_raise(session, payload.business_id)
        if user_id is not None and not is_member(session, business.organization_id, user_id):
            raise access_denied("business", business.id)
        if self.subscription_repository.get_by_business(session, business.id) is not None:
            raise duplicate("Subscription", "business_id", business.id)

        now = utcnow()
        subscription = Subscription(
            business_id=business.id,
            plan=payload.plan,
            status="TRIAL" if payload.trial_ends_at is not None else "ACTIVE",
            monthly_limit=payload.monthly_limit,
            current_usage=0,
            billing_cycle_start=now,
            billing_cycle_end=add_months(now, 1),
            trial_ends_at=payload.trial_ends_at,
        )
        session.add(subscription)
        session.commit()
        session.refresh(subscription)

        logger.info(
            "subscription.created",
            extra={"subscription_id": str(subscription.id), "business_id": str(business.id), "status": subscription.status},
        )
        self._emit("subscription.created", subscription)
        return SubscriptionRead.model_validate(subscription)

    def list_subscriptions(
        self,
        session: Session,
        user_id: uuid.UUID | None = None,
        *,
        plan: str | None = None,
        status: str | None = None,
        business_id: uuid.UUID | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SubscriptionList:
        stmt = select(Subscription)
        if user_id is not None:
            stmt = stmt.where(Subscription.business_id.in_(accessible_business_ids(user_id)))
        if plan:
            stmt = stmt.where(Subscription.plan == plan)
        if status:
            stmt = stmt.where(Subscription.status == status)
        if business_id is not None:
            stmt = stmt.where(Subscription.business_id == business_id)

        total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = session.scalars(stmt.order_by(Subscription.created_at.desc()).offset(offset).limit(limit)).all()
        return SubscriptionList(
            data=[SubscriptionRead.model_validate(row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    def get_subscription(self, session: Session, subscription_id: uuid.UUID) -> SubscriptionRead:
        return SubscriptionRead.model_validate(self.subscription_repository.get_or_raise(session, subscription_id))

    def find_by_business_id(self, session: Session, business_id: uuid.UUID) -> SubscriptionRead:
        subscription = self.subscription_repository.get_by_business(session, business_id)
        if subscription is None:
            raise not_found("Subscription", business_id)
        return SubscriptionRead.model_validate(subscription)

    def update_subscription(
        self, session: Session, subscription_id: uuid.UUID, payload: SubscriptionUpdate
    ) -> SubscriptionRead:
        subscription = self.subscription_repository.get_or_raise(session, subscription_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            if value is None and key != "trial_ends_at":
                continue
            setattr(subscription, key, value)
        return self._save(session, subscription)

    def cancel(self, session: Session, subscription_id: uuid.UUID) -> SubscriptionRead:
        subscription = self.subscription_repository.get_or_raise(session, subscription_id)
        if subscription.status == "CANCELED":
            raise BusinessException(
                ErrorCode.BUSINESS_INVALID_STATE_TRANSITION,
                "Subscription is already canceled",
                {"subscriptionId": str(subscription_id), "status": subscription.status},
            )
        subscription.status = "CANCELED"
        subscription.canceled_at = utcnow()
        read = self._save(session, subscription)
        self._emit("subscription.canceled", subscription)
        return read

    def increment_usage(self, session: Session, business_id: uuid.UUID, amount: int = 1) -> SubscriptionRead:
        subscription = self.subscription_repository.get_by_business(session, business_id)
        if subscription is None:
            raise not_found("Subscription", business_id)
        if subscription.current_usage + amount > subscription.monthly_limit:
            logger.warning(
                "subscription.quota_exceeded",
                extra={"subscription_id": str(subscription.id), "business_id": str(business_id)},
            )
            raise BusinessException(
                ErrorCode.BUSINESS_QUOTA_EXCEEDED,
                "Monthly usage limit reached",
                {"monthlyLimit": subscription.monthly_limit, "currentUsage": subscription.current_usage},
            )
        subscription.current_usage += amount
        return self._save(session, subscription)

    def reset_billing_cycle(self, session: Session, subscription_id: uuid.UUID) -> SubscriptionRead:
        subscription = self.subscription_repository.get_or_raise(session, subscription_id)
        now = utcnow()
        subscription.current_usage = 0
        subscription.billing_cycle_start = now
        subscription.billing_cycle_end = add_months(now, 1)
        logger.info("subscription.billing_cycle_reset", extra={"subscription_id": str(subscription.id)})
        return self._save(session, subscription)

    def stats(self, session: Session) -> SubscriptionStats:
        total = session.scalar(select(func.count(Subscription.id))) or 0
        by_plan = dict(session.execute(select(Subscription.plan, func.count(Subscription.id)).group_by(Subscription.plan)).all())
        by_status = dict(
            session.execute(select(Subscription.status, func.count(Subscription.id)).group_by(Subscription.status)).all()
        )
        return SubscriptionStats(total=total, by_plan=by_plan, by_status=by_status)

    @staticmethod
    def _save(session: Session, subscription: Subscription) -> SubscriptionRead:
        session.add(subscription)
        session.commit()
        session.refresh(subscription)
        return SubscriptionRead.model_validate(subscription)

    @staticmethod
    def _emit(event_type: str, subscription: Subscription) -> None:
        events.publish(
            {
                "event_type": event_type,
                "subscription_id": str(subscription.id),
                "business_id": str(subscription.business_id),
                "plan": subscription.plan,
                "status": subscription.status,
            }
        )


subscriptions_service = SubscriptionsService()
