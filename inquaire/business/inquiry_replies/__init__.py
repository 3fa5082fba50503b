from inquaire.business.inquiry_replies.models import InquiryReply
from inquaire.business.inquiry_replies.schemas import InquiryReplyCreate, InquiryReplyRead, InquiryReplyUpdate

__all__ = [
    "InquiryReply",
    "InquiryReplyCreate",
    "InquiryReplyUpdate",
    "InquiryReplyRead",
]
