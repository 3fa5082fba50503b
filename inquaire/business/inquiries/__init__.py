from inquaire.business.inquiries.models import Inquiry
from inquaire.business.inquiries.schemas import InquiryCreate, InquiryDetail, InquiryRead, InquiryUpdate

__all__ = [
    "Inquiry",
    "InquiryCreate",
    "InquiryUpdate",
    "InquiryRead",
    "InquiryDetail",
]
