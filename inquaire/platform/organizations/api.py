from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.database import get_db
from inquaire.platform.organizations.schemas import (
    AcceptInvitationRequest,
    InvitationRead,
    InviteMemberRequest,
    MemberRead,
    MessageResponse,
    OrganizationCreate,
    OrganizationDetail,
    OrganizationListItem,
    OrganizationUpdate,
    PermissionCheck,
    UpdateMemberRoleRequest,
)
from inquaire.platform.organizations.service import organizations_service


router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.post("", response_model=OrganizationDetail, status_code=status.HTTP_201_CREATED)
def create_organization(
    payload: OrganizationCreate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> OrganizationDetail:
    return organizations_service.create_organization(db, user.user_id, payload)


@router.get("", response_model=list[OrganizationListItem])
def list_my_organizations(
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> list[OrganizationListItem]:
    return organizations_service.find_my_organizations(db, user.user_id)


@router.post("/invitations/accept", response_model=MemberRead)
def accept_invitation(
    payload: AcceptInvitationRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> MemberRead:
    return organizations_service.accept_invitation(db, user.user_id, payload.token)


@router.get("/{organization_id}", response_model=OrganizationDetail)
def get_organization(
    organization_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> OrganizationDetail:
    return organizations_service.find_one(db, user.user_id, organization_id)


@router.patch("/{organization_id}", response_model=OrganizationDetail)
def update_organization(
    organization_id: uuid.UUID,
    payload: OrganizationUpdate,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> OrganizationDetail:
    return organizations_service.update_organization(db, user.user_id, organization_id, payload)


@router.delete("/{organization_id}", response_model=MessageResponse)
def delete_organization(
    organization_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> MessageResponse:
    return organizations_service.remove_organization(db, user.user_id, organization_id)


@router.get("/{organization_id}/members", response_model=list[MemberRead])
def list_members(
    organization_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> list[MemberRead]:
    return organizations_service.get_members(db, user.user_id, organization_id)


@router.post("/{organization_id}/members/invite", response_model=InvitationRead, status_code=status.HTTP_201_CREATED)
def invite_member(
    organization_id: uuid.UUID,
    payload: InviteMemberRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InvitationRead:
    return organizations_service.invite_member(db, user.user_id, organization_id, payload)


@router.patch("/{organization_id}/members/{member_id}/role", response_model=MemberRead)
def update_member_role(
    organization_id: uuid.UUID,
    member_id: uuid.UUID,
    payload: UpdateMemberRoleRequest,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> MemberRead:
    return organizations_service.update_member_role(db, user.user_id, organization_id, member_id, payload)


@router.delete("/{organization_id}/members/{member_id}", response_model=MessageResponse)
def remove_member(
    organization_id: uuid.UUID,
    member_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> MessageResponse:
    return organizations_service.remove_member(db, user.user_id, organization_id, member_id)


@router.post("/{organization_id}/leave", response_model=MessageResponse)
def leave_organization(
    organization_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> MessageResponse:
    return organizations_service.leave(db, user.user_id, organization_id)


@router.get("/{organization_id}/invitations", response_model=list[InvitationRead])
def list_pending_invitations(
    organization_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> list[InvitationRead]:
    return organizations_service.get_pending_invitations(db, user.user_id, organization_id)


@router.post("/{organization_id}/invitations/{invitation_id}/resend", response_model=InvitationRead)
def resend_invitation(
    organization_id: uuid.UUID,
    invitation_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> InvitationRead:
    return organizations_service.resend_invitation(db, user.user_id, organization_id, invitation_id)


@router.delete("/{organization_id}/invitations/{invitation_id}", response_model=MessageResponse)
def cancel_invitation(
    organization_id: uuid.UUID,
    invitation_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> MessageResponse:
    return organizations_service.cancel_invitation(db, user.user_id, organization_id, invitation_id)


@router.get("/{organization_id}/permissions/check", response_model=PermissionCheck)
def check_permission(
    organization_id: uuid.UUID,
    permission: str = Query(min_length=1),
    db: Session = Depends(get_db),
    user: AuthUser = Depends(get_authenticated_user),
) -> PermissionCheck:
    return organizations_service.check_permission(db, user.user_id, organization_id, permission)
