from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from inquaire import events, jobs
from inquaire.business.ai.service import ai_service
from inquaire.business.businesses.models import Business
from inquaire.business.channels.models import Channel
from inquaire.business.channels.repository import ChannelRepository
from inquaire.business.customers.models import Customer
from inquaire.business.customers.repository import CustomerRepository
from inquaire.business.inquiries.models import Inquiry
from inquaire.business.inquiries.repository import InquiryRepository
from inquaire.business.inquiries.schemas import (
    InquiryCreate,
    InquiryDetail,
    InquiryRead,
    InquiryStats,
    InquiryUpdate,
    MessageResponse,
)
from inquaire.business.inquiry_replies.models import InquiryReply
from inquaire.business.inquiry_replies.schemas import InquiryReplyRead
from inquaire.core.cache import business_stats_key, invalidate_business_stats, stats_cache
from inquaire.core.config import get_settings
from inquaire.core.database import as_utc, utcnow
from inquaire.core.errors import BusinessException, ErrorCode, invalid_input, not_allowed, not_found
from inquaire.core.pagination import PageParams, PaginatedResponse, inclusive_end, paginate
from inquaire.metrics import observe_inquiry_created
from inquaire.platform.security.guard import accessible_business_ids

logger = logging.getLogger("inquaire.inquiries")

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "NEW": frozenset({"IN_PROGRESS", "ON_HOLD", "COMPLETED"}),
    "IN_PROGRESS": frozenset({"COMPLETED", "ON_HOLD"}),
    "ON_HOLD": frozenset({"IN_PROGRESS", "COMPLETED"}),
    "COMPLETED": frozenset({"IN_PROGRESS"}),
}

TOP_TYPES_LIMIT = 10

_URGENCY_RANK = case(
    (Inquiry.urgency == "high", 3),
    (Inquiry.urgency == "medium", 2),
    (Inquiry.urgency == "low", 1),
    else_=0,
)

_SORT_COLUMNS = {
    "received_at": Inquiry.received_at,
    "created_at": Inquiry.created_at,
    "status": Inquiry.status,
    "urgency": _URGENCY_RANK,
}


def ensure_transition(current: str, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise BusinessException(
            ErrorCode.BUSINESS_INVALID_STATE_TRANSITION,
            f"Cannot change inquiry status from {current} to {target}",
            {"from": current, "to": target, "allowed": sorted(ALLOWED_TRANSITIONS.get(current, frozenset()))},
        )


def apply_status(inquiry: Inquiry, target: str) -> bool:
    """Move ``inquiry`` to ``target``; returns False when it already has that status."""

    if inquiry.status == target:
        return False
    ensure_transition(inquiry.status, target)
    inquiry.status = target
    if target == "COMPLETED":
        inquiry.completed_at = utcnow()
    return True


@dataclass(slots=True)
class InquiriesService:
    inquiry_repository: InquiryRepository = InquiryRepository()
    channel_repository: ChannelRepository = ChannelRepository()
    customer_repository: CustomerRepository = CustomerRepository()

    def create(self, session: Session, payload: InquiryCreate) -> InquiryRead:
        channel = self.channel_repository.get(session, payload.channel_id)
        if channel is None:
            raise not_found("Channel", payload.channel_id)
        customer = self.customer_repository.get(session, payload.customer_id)
        if customer is None:
            raise not_found("Customer", payload.customer_id)
        if channel.business_id != customer.business_id:
            raise invalid_input("customer_id", "channel and customer must belong to the same business")
        if payload.business_id != channel.business_id:
            raise invalid_input("business_id", "channel does not belong to this business")

        inquiry = self.record_inbound(
            session,
            channel,
            customer,
            payload.message_text,
            platform_message_id=payload.platform_message_id,
            extracted_info=payload.extracted_info,
        )
        return InquiryRead.model_validate(inquiry)

    def record_inbound(
        self,
        session: Session,
        channel: Channel,
        customer: Customer,
        message_text: str,
        *,
        platform_message_id: str | None = None,
        extracted_info: dict | None = None,
        received_at: datetime | None = None,
    ) -> Inquiry:
        """Persist a NEW inquiry and bump the customer's counters in one commit, then schedule analysis."""

        now = utcnow()
        inquiry = Inquiry(
            business_id=channel.business_id,
            channel_id=channel.id,
            customer_id=customer.id,
            message_text=message_text,
            platform_message_id=platform_message_id,
            extracted_info=extracted_info,
            status="NEW",
            received_at=received_at or now,
        )
        customer.last_contact = now
        customer.inquiry_count = (customer.inquiry_count or 0) + 1
        session.add_all([inquiry, customer])
        session.commit()
        session.refresh(inquiry)

        logger.info(
            "inquiry.created",
            extra={
                "inquiry_id": str(inquiry.id),
                "business_id": str(inquiry.business_id),
                "channel_id": str(channel.id),
                "customer_id": str(customer.id),
                "platform": channel.platform,
            },
        )
        observe_inquiry_created(channel.platform)
        invalidate_business_stats(inquiry.business_id)
        events.publish(
            {
                "event_type": "inquiry.created",
                "inquiry_id": str(inquiry.id),
                "business_id": str(inquiry.business_id),
                "channel_id": str(channel.id),
                "customer_id": str(customer.id),
                "platform": channel.platform,
            }
        )
        jobs.enqueue(jobs.ANALYZE_INQUIRY, [str(inquiry.id)])
        return inquiry

    def find_all(
        self,
        session: Session,
        user_id: uuid.UUID,
        params: PageParams,
        *,
        business_id: uuid.UUID | None = None,
        channel_id: uuid.UUID | None = None,
        customer_id: uuid.UUID | None = None,
        status: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        search: str | None = None,
        sort_by: str = "received_at",
        sort_order: str = "desc",
    ) -> PaginatedResponse[InquiryRead]:
        stmt = self.inquiry_repository.query().where(Inquiry.business_id.in_(accessible_business_ids(user_id)))
        if business_id is not None:
            stmt = stmt.where(Inquiry.business_id == business_id)
        if channel_id is not None:
            stmt = stmt.where(Inquiry.channel_id == channel_id)
        if customer_id is not None:
            stmt = stmt.where(Inquiry.customer_id == customer_id)
        if status:
            stmt = stmt.where(Inquiry.status == status)
        if start_date is not None:
            stmt = stmt.where(Inquiry.received_at >= as_utc(start_date))
        if end_date is not None:
            stmt = stmt.where(Inquiry.received_at <= as_utc(inclusive_end(end_date)))
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(
                or_(
                    Inquiry.message_text.ilike(pattern),
                    Inquiry.summary.ilike(pattern),
                    Inquiry.reply_text.ilike(pattern),
                )
            )

        column = _SORT_COLUMNS.get(sort_by, Inquiry.received_at)
        stmt = stmt.order_by(column.asc() if sort_order == "asc" else column.desc(), Inquiry.id)

        rows, meta = paginate(session, stmt, params)
        return PaginatedResponse[InquiryRead](
            data=[InquiryRead.model_validate(row) for row in rows],
            pagination=meta,
        )

    def find_one(self, session: Session, inquiry_id: uuid.UUID) -> InquiryDetail:
        inquiry = self.inquiry_repository.get_detail(session, inquiry_id)
        if inquiry is None:
            raise not_found("Inquiry", inquiry_id)
        return InquiryDetail.model_validate(inquiry)

    def update(self, session: Session, inquiry_id: uuid.UUID, payload: InquiryUpdate) -> InquiryRead:
        inquiry = self.inquiry_repository.get_or_raise(session, inquiry_id)
        changes = payload.model_dump(exclude_unset=True)
        target_status = changes.pop("status", None)
        if target_status is not None:
            apply_status(inquiry, target_status)
        for key, value in changes.items():
            setattr(inquiry, key, value)
        return self._save(session, inquiry)

    def change_status(self, session: Session, inquiry_id: uuid.UUID, target: str) -> InquiryRead:
        inquiry = self.inquiry_repository.get_or_raise(session, inquiry_id)
        previous = inquiry.status
        if not apply_status(inquiry, target):
            return InquiryRead.model_validate(inquiry)
        read = self._save(session, inquiry)
        events.publish(
            {
                "event_type": "inquiry.status_changed",
                "inquiry_id": str(inquiry_id),
                "from": previous,
                "to": target,
            }
        )
        return read

    def remove(self, session: Session, inquiry_id: uuid.UUID) -> MessageResponse:
        inquiry = self.inquiry_repository.get_or_raise(session, inquiry_id)
        if inquiry.status == "IN_PROGRESS":
            raise not_allowed("Cannot delete an inquiry that is in progress", {"inquiryId": str(inquiry_id)})
        self.inquiry_repository.soft_delete(session, inquiry)
        session.commit()
        invalidate_business_stats(inquiry.business_id)
        events.publish({"event_type": "inquiry.deleted", "inquiry_id": str(inquiry_id)})
        return MessageResponse(message="Inquiry deleted successfully")

    def analyze(self, session: Session, inquiry_id: uuid.UUID) -> InquiryRead:
        inquiry = self.inquiry_repository.get_or_raise(session, inquiry_id)
        industry_type = session.scalar(select(Business.industry_type).where(Business.id == inquiry.business_id))

        started = time.perf_counter()
        result = ai_service.analyze(session, inquiry.message_text, industry_type or "OTHER")
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        inquiry.type = result.type
        inquiry.summary = result.summary
        inquiry.extracted_info = result.extracted_info
        inquiry.sentiment = result.sentiment
        inquiry.urgency = result.urgency
        inquiry.reply_text = result.suggested_reply or inquiry.reply_text
        inquiry.ai_confidence = result.confidence
        inquiry.ai_model = ai_service.model
        inquiry.ai_processing_time = elapsed_ms
        inquiry.analyzed_at = utcnow()
        if inquiry.status == "NEW":
            inquiry.status = "IN_PROGRESS"
        read = self._save(session, inquiry)

        logger.info(
            "inquiry.analyzed",
            extra={"inquiry_id": str(inquiry.id), "business_id": str(inquiry.business_id), "duration_ms": elapsed_ms},
        )
        events.publish(
            {"event_type": "inquiry.analyzed", "inquiry_id": str(inquiry.id), "business_id": str(inquiry.business_id)}
        )
        return read

    def send_reply(
        self,
        session: Session,
        inquiry_id: uuid.UUID,
        message: str,
        sender_id: uuid.UUID | None = None,
    ) -> InquiryReplyRead:
        inquiry = self.inquiry_repository.get_or_raise(session, inquiry_id)
        now = utcnow()
        reply = InquiryReply(
            inquiry_id=inquiry.id,
            message_text=message,
            sender_type="HUMAN" if sender_id is not None else "AI",
            sender_id=sender_id,
            is_sent=False,
        )
        inquiry.reply_text = message
        inquiry.replied_at = now
        if inquiry.status == "NEW":
            inquiry.status = "IN_PROGRESS"
        session.add_all([reply, inquiry])
        session.commit()
        session.refresh(reply)
        invalidate_business_stats(inquiry.business_id)

        events.publish(
            {
                "event_type": "inquiry.replied",
                "inquiry_id": str(inquiry.id),
                "reply_id": str(reply.id),
                "sender_type": reply.sender_type,
            }
        )
        return InquiryReplyRead.model_validate(reply)

    def stats(
        self,
        session: Session,
        business_id: uuid.UUID,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> InquiryStats:
        key = business_stats_key(business_id, "inquiries", start_date, end_date)
        return stats_cache.get_or_set(
            key,
            get_settings().stats_cache_ttl_seconds,
            lambda: self._build_stats(session, business_id, start_date, end_date),
        )

    def _build_stats(
        self,
        session: Session,
        business_id: uuid.UUID,
        start_date: datetime | None,
        end_date: datetime | None,
    ) -> InquiryStats:
        scope = [Inquiry.business_id == business_id, Inquiry.deleted_at.is_(None)]
        if start_date is not None:
            scope.append(Inquiry.received_at >= as_utc(start_date))
        if end_date is not None:
            scope.append(Inquiry.received_at <= as_utc(inclusive_end(end_date)))

        def grouped(column, *, limit: int | None = None) -> dict[str, int]:
            count = func.count(Inquiry.id)
            stmt = select(column, count).where(*scope, column.is_not(None)).group_by(column).order_by(count.desc())
            if limit is not None:
                stmt = stmt.limit(limit)
            return {value: total for value, total in session.execute(stmt).all()}

        total = session.scalar(select(func.count(Inquiry.id)).where(*scope)) or 0
        return InquiryStats(
            business_id=business_id,
            total=total,
            by_status=grouped(Inquiry.status),
            by_sentiment=grouped(Inquiry.sentiment),
            by_urgency=grouped(Inquiry.urgency),
            by_type=grouped(Inquiry.type, limit=TOP_TYPES_LIMIT),
        )

    def _save(self, session: Session, inquiry: Inquiry) -> InquiryRead:
        session.add(inquiry)
        session.commit()
        session.refresh(inquiry)
        invalidate_business_stats(inquiry.business_id)
        return InquiryRead.model_validate(inquiry)


inquiries_service = InquiriesService()
