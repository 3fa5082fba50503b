from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import cast, exists, func, or_, select, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.businesses.repository import BusinessRepository
from inquaire.business.customers.models import Customer
from inquaire.business.customers.repository import CustomerRepository
from inquaire.business.customers.schemas import (
    CustomerCreate,
    CustomerDetail,
    CustomerInquirySummary,
    CustomerRead,
    CustomerStats,
    CustomerUpdate,
    MessageResponse,
)
from inquaire.business.inquiries.models import Inquiry
from inquaire.core.database import as_utc, utcnow
from inquaire.core.errors import BusinessException, ErrorCode, invalid_input, not_allowed
from inquaire.core.pagination import PageParams, PaginatedResponse, inclusive_end, paginate
from inquaire.platform.security.guard import accessible_business_ids

logger = logging.getLogger("inquaire.customers")

OPEN_INQUIRY_STATUSES = ("NEW", "IN_PROGRESS")
RECENT_INQUIRIES_LIMIT = 10
DEFAULT_NAME_PREFIX = "Customer_"

_SORT_COLUMNS = {
    "last_contact": Customer.last_contact,
    "first_contact": Customer.first_contact,
    "inquiry_count": Customer.inquiry_count,
    "created_at": Customer.created_at,
    "name": Customer.name,
}

MERGED_INTO_KEY = "merged_into"


def _has_tag(session: Session, tag: str):
    """Exact membership test on the JSON tags array, independent of how the driver encodes it."""

    if session.get_bind().dialect.name == "postgresql":
        elements = func.jsonb_array_elements_text(cast(Customer.tags, JSONB)).table_valued("value")
    else:
        elements = func.json_each(Customer.tags).table_valued("value")
    return exists(select(1).select_from(elements).where(elements.c.value == tag).correlate(Customer))


@dataclass(slots=True)
class CustomersService:
    customer_repository: CustomerRepository = CustomerRepository()
    business_repository: BusinessRepository = BusinessRepository()

    def create_customer(self, session: Session, payload: CustomerCreate) -> CustomerRead:
        self.business_repository.get_or_raise(session, payload.business_id)
        existing = self.customer_repository.find_by_platform_user(
            session, payload.business_id, payload.platform, payload.platform_user_id, include_deleted=True
        )
        if existing is not None:
            raise BusinessException(
                ErrorCode.RESOURCE_CONFLICT,
                f"Customer {payload.platform_user_id} already exists on {payload.platform}",
                {"platform": payload.platform, "platformUserId": payload.platform_user_id},
            )

        data = payload.model_dump(exclude={"metadata"})
        now = utcnow()
        customer = Customer(**data, extra_metadata=payload.metadata, first_contact=now, last_contact=now, inquiry_count=0)
        session.add(customer)
        session.commit()
        session.refresh(customer)

        events.publish(
            {"event_type": "customer.created", "customer_id": str(customer.id), "business_id": str(customer.business_id)}
        )
        return CustomerRead.model_validate(customer)

    def list_customers(
        self,
        session: Session,
        user_id: uuid.UUID,
        params: PageParams,
        *,
        business_id: uuid.UUID | None = None,
        platform: str | None = None,
        search: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        tag: str | None = None,
        sort_by: str = "last_contact",
        sort_order: str = "desc",
    ) -> PaginatedResponse[CustomerRead]:
        stmt = self.customer_repository.query().where(Customer.business_id.in_(accessible_business_ids(user_id)))
        if business_id is not None:
            stmt = stmt.where(Customer.business_id == business_id)
        if platform:
            stmt = stmt.where(Customer.platform == platform)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern), Customer.email.ilike(pattern))
            )
        if start_date is not None:
            stmt = stmt.where(Customer.created_at >= as_utc(start_date))
        if end_date is not None:
            stmt = stmt.where(Customer.created_at <= as_utc(inclusive_end(end_date)))
        if tag:
            stmt = stmt.where(_has_tag(session, tag))

        column = _SORT_COLUMNS.get(sort_by, Customer.last_contact)
        stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc(), Customer.id)

        rows, meta = paginate(session, stmt, params)
        return PaginatedResponse[CustomerRead](
            data=[CustomerRead.model_validate(row) for row in rows],
            pagination=meta,
        )

    def get_customer(self, session: Session, customer_id: uuid.UUID) -> CustomerDetail:
        customer = self.customer_repository.get_or_raise(session, customer_id)
        recent = session.scalars(
            select(Inquiry)
            .where(Inquiry.customer_id == customer.id, Inquiry.deleted_at.is_(None))
            .order_by(Inquiry.received_at.desc())
            .limit(RECENT_INQUIRIES_LIMIT)
        ).all()
        return CustomerDetail(
            **CustomerRead.model_validate(customer).model_dump(),
            recent_inquiries=[CustomerInquirySummary.model_validate(row) for row in recent],
        )

    def update_customer(self, session: Session, customer_id: uuid.UUID, payload: CustomerUpdate) -> CustomerRead:
        customer = self.customer_repository.get_or_raise(session, customer_id)
        changes = payload.model_dump(exclude_unset=True)
        if "metadata" in changes:
            metadata = changes.pop("metadata")
            if metadata is not None:
                customer.extra_metadata = metadata
        for key, value in changes.items():
            if key == "tags" and value is None:
                continue
            setattr(customer, key, value)
        session.add(customer)
        session.commit()
        session.refresh(customer)
        return CustomerRead.model_validate(customer)

    def remove_customer(self, session: Session, customer_id: uuid.UUID) -> MessageResponse:
        customer = self.customer_repository.get_or_raise(session, customer_id)
        open_inquiries = session.scalar(
            select(func.count(Inquiry.id)).where(
                Inquiry.customer_id == customer_id,
                Inquiry.deleted_at.is_(None),
                Inquiry.status.in_(OPEN_INQUIRY_STATUSES),
            )
        )
        if open_inquiries:
            raise not_allowed(
                "Cannot delete customer with open inquiries",
                {"customerId": str(customer_id), "openInquiries": open_inquiries},
            )
        self.customer_repository.soft_delete(session, customer)
        session.commit()
        events.publish({"event_type": "customer.deleted", "customer_id": str(customer_id)})
        return MessageResponse(message="Customer deleted successfully")

    def find_or_create_by_platform_user(
        self,
        session: Session,
        business_id: uuid.UUID,
        platform: str,
        platform_user_id: str,
        *,
        name: str | None = None,
        profile_image_url: str | None = None,
    ) -> Customer:
        """Upsert used by inbound webhooks; flushes but leaves the commit to the caller."""

        now = utcnow()
        customer = self.customer_repository.find_by_platform_user(
            session, business_id, platform, platform_user_id, include_deleted=True
        )
        if customer is not None and customer.deleted_at is not None:
            customer = self._merge_target(session, customer) or customer
        if customer is None:
            customer = Customer(
                business_id=business_id,
                platform=platform,
                platform_user_id=platform_user_id,
                name=name or f"{DEFAULT_NAME_PREFIX}{platform_user_id[:8]}",
                profile_image_url=profile_image_url,
                tags=[],
                extra_metadata={},
                first_contact=now,
                last_contact=now,
                inquiry_count=0,
            )
            logger.info(
                "customer.created_from_platform",
                extra={"business_id": str(business_id), "platform": platform},
            )
        else:
            customer.deleted_at = None
            customer.last_contact = now
            if name and not customer.name:
                customer.name = name
            if profile_image_url:
                customer.profile_image_url = profile_image_url
        session.add(customer)
        session.flush()
        return customer

    def _merge_target(self, session: Session, customer: Customer) -> Customer | None:
        """Follow ``merged_into`` links from a merged-away customer to the live record, if any."""

        seen = {customer.id}
        current = customer
        while current.deleted_at is not None:
            target_id = (current.extra_metadata or {}).get(MERGED_INTO_KEY)
            try:
                target = session.get(Customer, uuid.UUID(str(target_id)))
            except ValueError:
                return None
            if target is None or target.id in seen:
                return None
            seen.add(target.id)
            current = target
        return current

    def update_last_contact(self, session: Session, customer_id: uuid.UUID) -> CustomerRead:
        customer = self.customer_repository.get_or_raise(session, customer_id)
        customer.last_contact = utcnow()
        session.add(customer)
        session.commit()
        session.refresh(customer)
        return CustomerRead.model_validate(customer)

    def stats(self, session: Session, business_id: uuid.UUID) -> CustomerStats:
        scope = (Customer.business_id == business_id, Customer.deleted_at.is_(None))
        total = session.scalar(select(func.count(Customer.id)).where(*scope)) or 0
        by_platform = dict(
            session.execute(
                select(Customer.platform, func.count(Customer.id)).where(*scope).group_by(Customer.platform)
            ).all()
        )
        new_customers = session.scalar(
            select(func.count(Customer.id)).where(*scope, Customer.created_at >= utcnow() - timedelta(days=7))
        )
        return CustomerStats(
            business_id=business_id,
            total=total,
            by_platform=by_platform,
            new_last_7_days=new_customers or 0,
        )

    def merge(self, session: Session, source_id: uuid.UUID, target_id: uuid.UUID) -> CustomerRead:
        if source_id == target_id:
            raise invalid_input("target_customer_id", "source and target customers must differ")
        source = self.customer_repository.get_or_raise(session, source_id)
        target = self.customer_repository.get_or_raise(session, target_id)
        if source.business_id != target.business_id:
            raise invalid_input("target_customer_id", "customers belong to different businesses")

        moved = session.execute(
            update(Inquiry).where(Inquiry.customer_id == source.id).values(customer_id=target.id)
        ).rowcount
        target.inquiry_count = (target.inquiry_count or 0) + (source.inquiry_count or 0)
        target.first_contact = min(as_utc(source.first_contact), as_utc(target.first_contact))
        target.last_contact = max(as_utc(source.last_contact), as_utc(target.last_contact))
        source.inquiry_count = 0
        source.extra_metadata = {**(source.extra_metadata or {}), MERGED_INTO_KEY: str(target.id)}
        self.customer_repository.soft_delete(session, source)
        session.add(target)
        session.commit()
        session.refresh(target)

        logger.info(
            "customer.merged",
            extra={"customer_id": str(target.id), "business_id": str(target.business_id)},
        )
        events.publish(
            {
                "event_type": "customer.merged",
                "source_customer_id": str(source_id),
                "target_customer_id": str(target_id),
                "moved_inquiries": moved,
            }
        )
        return CustomerRead.model_validate(target)


customers_service = CustomersService()
