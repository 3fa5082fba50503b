from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.businesses.models import Business
from inquaire.business.businesses.repository import BusinessRepository
from inquaire.business.businesses.schemas import (
    BusinessCounts,
    BusinessCreate,
    BusinessDashboard,
    BusinessRead,
    BusinessUpdate,
    CustomerWindowStats,
    InquiryWindowStats,
    MessageResponse,
    TopChannel,
)
from inquaire.business.channels.models import Channel
from inquaire.business.customers.models import Customer
from inquaire.business.inquiries.models import Inquiry
from inquaire.core.cache import business_stats_key, stats_cache
from inquaire.core.config import get_settings
from inquaire.core.database import utcnow
from inquaire.core.errors import BusinessException, ErrorCode, access_denied, not_allowed
from inquaire.platform.organizations.models import OrganizationMember, OrganizationSubscription
from inquaire.platform.organizations.repository import OrganizationMemberRepository, OrganizationRepository

logger = logging.getLogger("inquaire.businesses")

MANAGE_ROLES = frozenset({"OWNER", "ADMIN", "MANAGER"})
DELETE_ROLES = frozenset({"OWNER", "ADMIN"})
TOP_CHANNELS_LIMIT = 5


@dataclass(slots=True)
class BusinessesService:
    business_repository: BusinessRepository = BusinessRepository()
    organization_repository: OrganizationRepository = OrganizationRepository()
    member_repository: OrganizationMemberRepository = OrganizationMemberRepository()

    def create_business(self, session: Session, user_id: uuid.UUID, payload: BusinessCreate) -> BusinessRead:
        self.organization_repository.get_or_raise(session, payload.organization_id)
        self._require_role(session, payload.organization_id, user_id, MANAGE_ROLES)

        subscription = session.scalar(
            select(OrganizationSubscription).where(OrganizationSubscription.organization_id == payload.organization_id)
        )
        current = self._active_business_count(session, payload.organization_id)
        if subscription is not None and current >= subscription.max_businesses:
            raise BusinessException(
                ErrorCode.BUSINESS_QUOTA_EXCEEDED,
                f"Business limit reached ({subscription.max_businesses})",
                {"maxBusinesses": subscription.max_businesses, "currentBusinesses": current},
            )

        business = Business(**payload.model_dump())
        session.add(business)
        session.commit()
        session.refresh(business)

        logger.info(
            "business.created",
            extra={"business_id": str(business.id), "organization_id": str(business.organization_id)},
        )
        events.publish(
            {
                "event_type": "business.created",
                "business_id": str(business.id),
                "organization_id": str(business.organization_id),
                "industry_type": business.industry_type,
            }
        )
        return self._read(session, business)

    def list_businesses(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID | None = None,
    ) -> list[BusinessRead]:
        member_orgs = select(OrganizationMember.organization_id).where(
            OrganizationMember.user_id == user_id,
            OrganizationMember.deleted_at.is_(None),
        )
        stmt = self.business_repository.query().where(Business.organization_id.in_(member_orgs))
        if organization_id is not None:
            if self.member_repository.find_membership(session, organization_id, user_id) is None:
                raise access_denied("Organization", organization_id)
            stmt = stmt.where(Business.organization_id == organization_id)
        rows = session.scalars(stmt.order_by(Business.created_at.desc())).all()
        return [self._read(session, row) for row in rows]

    def get_business(self, session: Session, business_id: uuid.UUID) -> BusinessRead:
        return self._read(session, self.business_repository.get_or_raise(session, business_id))

    def update_business(
        self,
        session: Session,
        user_id: uuid.UUID,
        business_id: uuid.UUID,
        payload: BusinessUpdate,
    ) -> BusinessRead:
        business = self.business_repository.get_or_raise(session, business_id)
        self._require_role(session, business.organization_id, user_id, MANAGE_ROLES)
        for key, value in payload.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(business, key, value)
        session.add(business)
        session.commit()
        session.refresh(business)
        events.publish({"event_type": "business.updated", "business_id": str(business.id)})
        return self._read(session, business)

    def remove_business(self, session: Session, user_id: uuid.UUID, business_id: uuid.UUID) -> MessageResponse:
        business = self.business_repository.get_or_raise(session, business_id)
        self._require_role(session, business.organization_id, user_id, DELETE_ROLES)

        active_channels = session.scalar(
            select(func.count(Channel.id)).where(Channel.business_id == business_id, Channel.deleted_at.is_(None))
        )
        if active_channels:
            raise not_allowed(
                "Cannot delete business with active channels",
                {"businessId": str(business_id), "channelCount": active_channels},
            )
        self.business_repository.soft_delete(session, business)
        session.commit()

        logger.info("business.deleted", extra={"business_id": str(business_id)})
        events.publish({"event_type": "business.deleted", "business_id": str(business_id)})
        return MessageResponse(message="Business deleted successfully")

    def dashboard(self, session: Session, business_id: uuid.UUID) -> BusinessDashboard:
        self.business_repository.get_or_raise(session, business_id)
        return stats_cache.get_or_set(
            business_stats_key(business_id, "dashboard"),
            get_settings().stats_cache_ttl_seconds,
            lambda: self._build_dashboard(session, business_id),
        )

    def _build_dashboard(self, session: Session, business_id: uuid.UUID) -> BusinessDashboard:
        now = utcnow()
        start_of_day = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
        inquiries = (Inquiry.business_id == business_id, Inquiry.deleted_at.is_(None))

        def count_since(since: datetime) -> int:
            stmt = select(func.count(Inquiry.id)).where(*inquiries, Inquiry.received_at >= since)
            return session.scalar(stmt) or 0

        by_status = dict(
            session.execute(select(Inquiry.status, func.count(Inquiry.id)).where(*inquiries).group_by(Inquiry.status)).all()
        )
        by_sentiment = dict(
            session.execute(
                select(Inquiry.sentiment, func.count(Inquiry.id))
                .where(*inquiries, Inquiry.sentiment.is_not(None))
                .group_by(Inquiry.sentiment)
            ).all()
        )

        customers = (Customer.business_id == business_id, Customer.deleted_at.is_(None))
        customer_total = session.scalar(select(func.count(Customer.id)).where(*customers)) or 0
        new_customers = (
            session.scalar(select(func.count(Customer.id)).where(*customers, Customer.created_at >= now - timedelta(days=7)))
            or 0
        )

        inquiry_count = func.count(Inquiry.id).label("inquiry_count")
        top_rows = session.execute(
            select(Channel.id, Channel.name, Channel.platform, inquiry_count)
            .join(Inquiry, Inquiry.channel_id == Channel.id)
            .where(Channel.business_id == business_id, Channel.deleted_at.is_(None), Inquiry.deleted_at.is_(None))
            .group_by(Channel.id, Channel.name, Channel.platform)
            .order_by(inquiry_count.desc())
            .limit(TOP_CHANNELS_LIMIT)
        ).all()

        return BusinessDashboard(
            business_id=business_id,
            inquiries=InquiryWindowStats(
                today=count_since(start_of_day),
                last_7_days=count_since(now - timedelta(days=7)),
                last_30_days=count_since(now - timedelta(days=30)),
                by_status=by_status,
                by_sentiment=by_sentiment,
            ),
            customers=CustomerWindowStats(total=customer_total, new_last_7_days=new_customers),
            top_channels=[
                TopChannel(id=row.id, name=row.name, platform=row.platform, inquiry_count=row.inquiry_count)
                for row in top_rows
            ],
        )

    def _require_role(
        self,
        session: Session,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        roles: frozenset[str],
    ) -> OrganizationMember:
        member = self.member_repository.find_membership(session, organization_id, user_id)
        if member is None:
            raise access_denied("Organization", organization_id)
        if member.role not in roles:
            raise BusinessException(
                ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
                f"Requires one of roles: {', '.join(sorted(roles))}",
                {"role": member.role, "requiredRoles": sorted(roles)},
            )
        return member

    @staticmethod
    def _active_business_count(session: Session, organization_id: uuid.UUID) -> int:
        stmt = select(func.count(Business.id)).where(
            Business.organization_id == organization_id,
            Business.deleted_at.is_(None),
        )
        return session.scalar(stmt) or 0

    @staticmethod
    def _read(session: Session, business: Business) -> BusinessRead:
        def count(model: type, business_id: uuid.UUID) -> int:
            stmt = select(func.count(model.id)).where(model.business_id == business_id, model.deleted_at.is_(None))
            return session.scalar(stmt) or 0

        counts = BusinessCounts(
            channels=count(Channel, business.id),
            customers=count(Customer, business.id),
            inquiries=count(Inquiry, business.id),
        )
        return BusinessRead.model_validate(business).model_copy(update={"counts": counts})


businesses_service = BusinessesService()
