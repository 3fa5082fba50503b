from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.inquiries.models import Inquiry
from inquaire.business.inquiries.repository import InquiryRepository
from inquaire.business.inquiry_replies.models import InquiryReply
from inquaire.business.inquiry_replies.repository import InquiryReplyRepository
from inquaire.business.inquiry_replies.schemas import (
    InquiryReplyCreate,
    InquiryReplyList,
    InquiryReplyRead,
    InquiryReplyUpdate,
    MessageResponse,
)
from inquaire.core.database import utcnow
from inquaire.platform.security.guard import accessible_business_ids

logger = logging.getLogger("inquaire.inquiry_replies")


@dataclass(slots=True)
class InquiryRepliesService:
    reply_repository: InquiryReplyRepository = InquiryReplyRepository()
    inquiry_repository: InquiryRepository = InquiryRepository()

    def create_reply(self, session: Session, payload: InquiryReplyCreate) -> InquiryReplyRead:
        self.inquiry_repository.get_or_raise(session, payload.inquiry_id)
        reply = InquiryReply(**payload.model_dump())
        if reply.is_sent:
            reply.sent_at = utcnow()
        session.add(reply)
        session.commit()
        session.refresh(reply)
        events.publish(
            {
                "event_type": "inquiry_reply.created",
                "reply_id": str(reply.id),
                "inquiry_id": str(reply.inquiry_id),
                "sender_type": reply.sender_type,
            }
        )
        return InquiryReplyRead.model_validate(reply)

    def list_replies(
        self,
        session: Session,
        user_id: uuid.UUID,
        *,
        inquiry_id: uuid.UUID | None = None,
        sender_type: str | None = None,
        is_sent: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> InquiryReplyList:
        stmt = (
            select(InquiryReply)
            .join(Inquiry, Inquiry.id == InquiryReply.inquiry_id)
            .where(Inquiry.deleted_at.is_(None), Inquiry.business_id.in_(accessible_business_ids(user_id)))
        )
        if inquiry_id is not None:
            stmt = stmt.where(InquiryReply.inquiry_id == inquiry_id)
        if sender_type:
            stmt = stmt.where(InquiryReply.sender_type == sender_type)
        if is_sent is not None:
            stmt = stmt.where(InquiryReply.is_sent == is_sent)

        total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = session.scalars(stmt.order_by(InquiryReply.created_at.desc()).offset(offset).limit(limit)).all()
        return InquiryReplyList(
            data=[InquiryReplyRead.model_validate(row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    def replies_for_inquiry(self, session: Session, inquiry_id: uuid.UUID) -> list[InquiryReplyRead]:
        self.inquiry_repository.get_or_raise(session, inquiry_id)
        rows = session.scalars(
            select(InquiryReply).where(InquiryReply.inquiry_id == inquiry_id).order_by(InquiryReply.created_at.asc())
        ).all()
        return [InquiryReplyRead.model_validate(row) for row in rows]

    def get_reply(self, session: Session, reply_id: uuid.UUID) -> InquiryReplyRead:
        return InquiryReplyRead.model_validate(self.reply_repository.get_or_raise(session, reply_id))

    def update_reply(self, session: Session, reply_id: uuid.UUID, payload: InquiryReplyUpdate) -> InquiryReplyRead:
        reply = self.reply_repository.get_or_raise(session, reply_id)
        changes = payload.model_dump(exclude_unset=True)
        for key, value in changes.items():
            if key in {"message_text", "is_sent"} and value is None:
                continue
            setattr(reply, key, value)
        if changes.get("is_sent") and reply.sent_at is None:
            reply.sent_at = utcnow()
        return self._save(session, reply)

    def delete_reply(self, session: Session, reply_id: uuid.UUID) -> MessageResponse:
        reply = self.reply_repository.get_or_raise(session, reply_id)
        session.delete(reply)
        session.commit()
        return MessageResponse(message="Inquiry reply deleted successfully")

    def retry(self, session: Session, reply_id: uuid.UUID) -> InquiryReplyRead:
        reply = self.reply_repository.get_or_raise(session, reply_id)
        reply.retry_count = (reply.retry_count or 0) + 1
        reply.failed_reason = None
        logger.info("inquiry_reply.retry", extra={"inquiry_id": str(reply.inquiry_id), "attempt": reply.retry_count})
        return self._save(session, reply)

    def mark_sent(self, session: Session, reply_id: uuid.UUID) -> InquiryReplyRead:
        reply = self.reply_repository.get_or_raise(session, reply_id)
        reply.is_sent = True
        reply.sent_at = utcnow()
        reply.failed_reason = None
        return self._save(session, reply)

    def mark_failed(self, session: Session, reply_id: uuid.UUID, reason: str) -> InquiryReplyRead:
        reply = self.reply_repository.get_or_raise(session, reply_id)
        reply.is_sent = False
        reply.failed_reason = reason
        logger.warning(
            "inquiry_reply.failed",
            extra={"inquiry_id": str(reply.inquiry_id), "error": reason},
        )
        return self._save(session, reply)

    @staticmethod
    def _save(session: Session, reply: InquiryReply) -> InquiryReplyRead:
        session.add(reply)
        session.commit()
        session.refresh(reply)
        return InquiryReplyRead.model_validate(reply)


inquiry_replies_service = InquiryRepliesService()
