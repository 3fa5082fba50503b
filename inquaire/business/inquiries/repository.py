from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from inquaire.business.inquiries.models import Inquiry
from inquaire.platform.security.repository import BaseRepository


class InquiryRepository(BaseRepository[Inquiry]):
    model = Inquiry
    resource = "Inquiry"

    def get_detail(self, session: Session, inquiry_id: uuid.UUID) -> Inquiry | None:
        stmt = (
            select(Inquiry)
            .options(selectinload(Inquiry.customer), selectinload(Inquiry.channel), selectinload(Inquiry.replies))
            .where(Inquiry.id == inquiry_id, Inquiry.deleted_at.is_(None))
        )
        return session.scalar(stmt)
