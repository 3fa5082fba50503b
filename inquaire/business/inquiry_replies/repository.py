from __future__ import annotations

from inquaire.business.inquiry_replies.models import InquiryReply
from inquaire.platform.security.repository import BaseRepository


class InquiryReplyRepository(BaseRepository[InquiryReply]):
    model = InquiryReply
    resource = "InquiryReply"
