from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.businesses.repository import BusinessRepository
from inquaire.business.payments.models import Payment
from inquaire.business.payments.repository import PaymentRepository
from inquaire.business.payments.schemas import (
    PaymentCreate,
    PaymentList,
    PaymentRead,
    PaymentStats,
    PaymentUpdate,
)
from inquaire.business.subscriptions.repository import SubscriptionRepository
from inquaire.core.database import utcnow
from inquaire.core.errors import BusinessException, ErrorCode, access_denied, duplicate, invalid_input
from inquaire.platform.security.guard import accessible_business_ids, is_member

logger = logging.getLogger("inquaire.payments")


VALID_PAYMENT_TRANSITIONS: dict[str, set[str]] = {
    "PENDING": {"COMPLETED", "FAILED"},
    "COMPLETED": {"REFUNDED"},
    "FAILED": set(),
    "REFUNDED": set(),
}


@dataclass(slots=True)
class PaymentsService:
    payment_repository: PaymentRepository = PaymentRepository()
    business_repository: BusinessRepository = BusinessRepository()
    subscription_repository: SubscriptionRepository = SubscriptionRepository()

    def create_payment(self, session: Session, payload: PaymentCreate, user_id: uuid.UUID | None = None) -> PaymentRead:
        business = self.business_repository.get_or_raise(session, payload.business_id)
        if user_id is not None and not is_member(session, business.organization_id, user_id):
            raise access_denied("business", business.id)
        subscription = self.subscription_repository.get_or_raise(session, payload.subscription_id)
        if subscription.business_id != business.id:
            raise invalid_input("subscription_id", "subscription does not belong to this business")

        data = payload.model_dump(exclude={"metadata"})
        payment = Payment(**data, extra_metadata=payload.metadata, status="PENDING")
        session.add(payment)
        session.commit()
        session.refresh(payment)

        logger.info(
            "payment.created",
            extra={"payment_id": str(payment.id), "business_id": str(business.id), "subscription_id": str(subscription.id)},
        )
        self._emit("payment.created", payment)
        return PaymentRead.model_validate(payment)

    def list_payments(
        self,
        session: Session,
        user_id: uuid.UUID | None = None,
        *,
        status: str | None = None,
        business_id: uuid.UUID | None = None,
        subscription_id: uuid.UUID | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> PaymentList:
        stmt = select(Payment)
        if user_id is not None:
            stmt = stmt.where(Payment.business_id.in_(accessible_business_ids(user_id)))
        if status:
            stmt = stmt.where(Payment.status == status)
        if business_id is not None:
            stmt = stmt.where(Payment.business_id == business_id)
        if subscription_id is not None:
            stmt = stmt.where(Payment.subscription_id == subscription_id)

        total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = session.scalars(stmt.order_by(Payment.created_at.desc()).offset(offset).limit(limit)).all()
        return PaymentList(
            data=[PaymentRead.model_validate(row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    def get_payment(self, session: Session, payment_id: uuid.UUID) -> PaymentRead:
        return PaymentRead.model_validate(self.payment_repository.get_or_raise(session, payment_id))

    def update_payment(self, session: Session, payment_id: uuid.UUID, payload: PaymentUpdate) -> PaymentRead:
        payment = self.payment_repository.get_or_raise(session, payment_id)
        changes = payload.model_dump(exclude_unset=True)
        target = changes.pop("status", None)
        metadata = changes.pop("metadata", None)
        if target is not None and target != payment.status:
            self._assert_transition(payment.status, target)
            payment.status = target
            if target == "COMPLETED":
                payment.paid_at = utcnow()
            elif target == "FAILED":
                payment.failed_at = utcnow()
        if metadata is not None:
            payment.extra_metadata = metadata
        for key, value in changes.items():
            setattr(payment, key, value)
        read = self._save(session, payment)
        if target == "COMPLETED":
            self._emit("payment.completed", payment)
        return read

    def confirm(self, session: Session, payment_id: uuid.UUID, payment_key: str) -> PaymentRead:
        payment = self.payment_repository.get_or_raise(session, payment_id)
        self._assert_transition(payment.status, "COMPLETED")
        payment.status = "COMPLETED"
        payment.payment_key = payment_key
        payment.paid_at = utcnow()
        read = self._save(session, payment)
        logger.info("payment.confirmed", extra={"payment_id": str(payment.id), "business_id": str(payment.business_id)})
        self._emit("payment.completed", payment)
        return read

    def stats(self, session: Session) -> PaymentStats:
        total = session.scalar(select(func.count(Payment.id))) or 0
        by_status = dict(session.execute(select(Payment.status, func.count(Payment.id)).group_by(Payment.status)).all())
        total_amount = session.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == "COMPLETED")
        )
        return PaymentStats(total=total, by_status=by_status, total_amount=int(total_amount or 0))

    @staticmethod
    def _assert_transition(current: str, target: str) -> None:
        if target not in VALID_PAYMENT_TRANSITIONS.get(current, set()):
            raise BusinessException(
                ErrorCode.BUSINESS_INVALID_STATE_TRANSITION,
                f"invalid payment transition {current} -> {target}",
                {"from": current, "to": target},
            )

    @staticmethod
    def _save(session: Session, payment: Payment) -> PaymentRead:
        payment_key = payment.payment_key
        session.add(payment)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise duplicate("Payment", "payment_key", payment_key)
        session.refresh(payment)
        return PaymentRead.model_validate(payment)

    @staticmethod
    def _emit(event_type: str, payment: Payment) -> None:
        events.publish(
            {
                "event_type": event_type,
                "payment_id": str(payment.id),
                "business_id": str(payment.business_id),
                "subscription_id": str(payment.subscription_id),
                "amount": payment.amount,
                "currency": payment.currency,
                "status": payment.status,
            }
        )


payments_service = PaymentsService()
