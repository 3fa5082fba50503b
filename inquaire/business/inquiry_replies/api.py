from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.business.inquiry_replies.schemas import (
    InquiryReplyCreate,
    InquiryReplyList,
    InquiryReplyRead,
    InquiryReplyUpdate,
    MarkFailedRequest,
    MessageResponse,
    SenderType,
)
from inquaire.business.inquiry_replies.service import inquiry_replies_service
from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.platform.security.guard import check_resource_access, require_resource_access


router = APIRouter(prefix="/inquiry-replies", tags=["inquiry-replies"])


def _require_reply_access(db: Session, user: AuthUser, reply_id: uuid.UUID) -> None:
    reply = inquiry_replies_service.get_reply(db, reply_id)
    check_resource_access(db, user.user_id, "inquiry", reply.inquiry_id)


@router.post("", response_model=InquiryReplyRead, status_code=status.HTTP_201_CREATED)
def create_inquiry_reply(
    payload: InquiryReplyCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InquiryReplyRead:
    check_resource_access(db, user.user_id, "inquiry", payload.inquiry_id)
    return inquiry_replies_service.create_reply(db, payload)


@router.get("", response_model=InquiryReplyList)
def list_inquiry_replies(
    inquiry_id: uuid.UUID | None = Query(default=None),
    sender_type: SenderType | None = Query(default=None),
    is_sent: bool | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InquiryReplyList:
    return inquiry_replies_service.list_replies(
        db,
        user.user_id,
        inquiry_id=inquiry_id,
        sender_type=sender_type,
        is_sent=is_sent,
        limit=limit,
        offset=offset,
    )


@router.get("/inquiry/{inquiry_id}", response_model=list[InquiryReplyRead])
def list_replies_for_inquiry(
    inquiry_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_resource_access("inquiry")),
) -> list[InquiryReplyRead]:
    return inquiry_replies_service.replies_for_inquiry(db, inquiry_id)


@router.get("/{reply_id}", response_model=InquiryReplyRead)
def get_inquiry_reply(
    reply_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InquiryReplyRead:
    _require_reply_access(db, user, reply_id)
    return inquiry_replies_service.get_reply(db, reply_id)


@router.patch("/{reply_id}", response_model=InquiryReplyRead)
def update_inquiry_reply(
    reply_id: uuid.UUID,
    payload: InquiryReplyUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InquiryReplyRead:
    _require_reply_access(db, user, reply_id)
    return inquiry_replies_service.update_reply(db, reply_id, payload)


@router.delete("/{reply_id}", response_model=MessageResponse)
def delete_inquiry_reply(
    reply_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> MessageResponse:
    _require_reply_access(db, user, reply_id)
    return inquiry_replies_service.delete_reply(db, reply_id)


@router.post("/{reply_id}/retry", response_model=InquiryReplyRead)
def retry_inquiry_reply(
    reply_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InquiryReplyRead:
    _require_reply_access(db, user, reply_id)
    return inquiry_replies_service.retry(db, reply_id)


@router.patch("/{reply_id}/sent", response_model=InquiryReplyRead)
def mark_inquiry_reply_sent(
    reply_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InquiryReplyRead:
    _require_reply_access(db, user, reply_id)
    return inquiry_replies_service.mark_sent(db, reply_id)


@router.patch("/{reply_id}/failed", response_model=InquiryReplyRead)
def mark_inquiry_reply_failed(
    reply_id: uuid.UUID,
    payload: MarkFailedRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InquiryReplyRead:
    _require_reply_access(db, user, reply_id)
    return inquiry_replies_service.mark_failed(db, reply_id, payload.reason)
