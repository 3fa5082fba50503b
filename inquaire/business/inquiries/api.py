from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.business.inquiries.schemas import (
    InquiryCreate,
    InquiryDetail,
    InquiryRead,
    InquirySortField,
    InquiryStats,
    InquiryStatus,
    InquiryStatusUpdate,
    InquiryUpdate,
    MessageResponse,
    SendReplyRequest,
    SortOrder,
)
from inquaire.business.inquiries.service import inquiries_service
from inquaire.business.inquiry_replies.schemas import InquiryReplyRead
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.core.pagination import PageParams, PaginatedResponse, page_params
from inquaire.platform.security.guard import ensure_business_access, require_resource_access


router = APIRouter(prefix="/inquiries", tags=["inquiries"])


@router.post("", response_model=InquiryRead, status_code=status.HTTP_201_CREATED)
def create_inquiry(
    payload: InquiryCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InquiryRead:
    ensure_business_access(db, user.user_id, payload.business_id)
    return inquiries_service.create(db, payload)


@router.get("", response_model=PaginatedResponse[InquiryRead])
def list_inquiries(
    business_id: uuid.UUID | None = Query(default=None),
    channel_id: uuid.UUID | None = Query(default=None),
    customer_id: uuid.UUID | None = Query(default=None),
    inquiry_status: InquiryStatus | None = Query(default=None, alias="status"),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: InquirySortField = Query(default="received_at"),
    sort_order: SortOrder = Query(default="desc"),
    params: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> PaginatedResponse[InquiryRead]:
    return inquiries_service.find_all(
        db,
        user.user_id,
        params,
        business_id=business_id,
        channel_id=channel_id,
        customer_id=customer_id,
        status=inquiry_status,
        start_date=start_date,
        end_date=end_date,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/stats", response_model=InquiryStats)
def inquiry_stats(
    business_id: uuid.UUID = Query(),
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("business")),
) -> InquiryStats:
    return inquiries_service.stats(db, business_id, start_date, end_date)


@router.get("/{inquiry_id}", response_model=InquiryDetail)
def get_inquiry(
    inquiry_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("inquiry")),
) -> InquiryDetail:
    return inquiries_service.find_one(db, inquiry_id)


@router.patch("/{inquiry_id}", response_model=InquiryRead)
def update_inquiry(
    inquiry_id: uuid.UUID,
    payload: InquiryUpdate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("inquiry")),
) -> InquiryRead:
    return inquiries_service.update(db, inquiry_id, payload)


@router.patch("/{inquiry_id}/status", response_model=InquiryRead)
def change_inquiry_status(
    inquiry_id: uuid.UUID,
    payload: InquiryStatusUpdate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("inquiry")),
) -> InquiryRead:
    return inquiries_service.change_status(db, inquiry_id, payload.status)


@router.delete("/{inquiry_id}", response_model=MessageResponse)
def delete_inquiry(
    inquiry_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("inquiry")),
) -> MessageResponse:
    return inquiries_service.remove(db, inquiry_id)


@router.post("/{inquiry_id}/analyze", response_model=InquiryRead)
def analyze_inquiry(
    inquiry_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("inquiry")),
) -> InquiryRead:
    return inquiries_service.analyze(db, inquiry_id)


@router.post("/{inquiry_id}/reply", response_model=InquiryReplyRead, status_code=status.HTTP_201_CREATED)
def reply_to_inquiry(
    inquiry_id: uuid.UUID,
    payload: SendReplyRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(require_resource_access("inquiry")),
) -> InquiryReplyRead:
    sender_id = user.user_id if payload.sender_type == "HUMAN" else None
    return inquiries_service.send_reply(db, inquiry_id, payload.message, sender_id)
