from __future__ import annotations

import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.business.businesses.models import Business
from inquaire.core.config import get_settings
from inquaire.core.database import as_utc, utcnow
from inquaire.core.errors import BusinessException, ErrorCode, access_denied, duplicate, not_allowed, not_found, rule_violation
from inquaire.platform.identity.repository import UserRepository
from inquaire.platform.organizations.models import (
    Invitation,
    Organization,
    OrganizationMember,
    OrganizationSubscription,
)
from inquaire.platform.organizations.permissions import (
    ROLE_HIERARCHY,
    can_assign_role,
    compare_roles,
    get_permissions_for_role,
    has_permission,
)
from inquaire.platform.organizations.repository import (
    InvitationRepository,
    OrganizationMemberRepository,
    OrganizationRepository,
)
from inquaire.platform.organizations.schemas import (
    InvitationRead,
    InviteMemberRequest,
    MemberRead,
    MessageResponse,
    OrganizationCounts,
    OrganizationCreate,
    OrganizationDetail,
    OrganizationListItem,
    OrganizationRead,
    OrganizationSubscriptionRead,
    OrganizationUpdate,
    PermissionCheck,
    UpdateMemberRoleRequest,
)

logger = logging.getLogger("inquaire.organizations")

TRIAL_MONTHLY_LIMIT = 100
TRIAL_MAX_BUSINESSES = 1
TRIAL_MAX_MEMBERS = 3
BILLING_CYCLE_DAYS = 30
SLUG_BASE_LENGTH = 40

_SLUG_STRIP = re.compile(r"[^\w\s-]")
_SLUG_SPACES = re.compile(r"\s+")


def generate_slug(name: str) -> str:
    base = _SLUG_SPACES.sub("-", _SLUG_STRIP.sub("", name.lower()).strip())[:SLUG_BASE_LENGTH]
    return f"{base}-{secrets.token_hex(4)}"


@dataclass(slots=True)
class OrganizationsService:
    organization_repository: OrganizationRepository = OrganizationRepository()
    member_repository: OrganizationMemberRepository = OrganizationMemberRepository()
    invitation_repository: InvitationRepository = InvitationRepository()
    user_repository: UserRepository = UserRepository()

    def create_organization(self, session: Session, user_id: uuid.UUID, payload: OrganizationCreate) -> OrganizationDetail:
        slug = generate_slug(payload.name)
        if self.organization_repository.get_by_slug(session, slug) is not None:
            raise duplicate("Organization", "slug", slug)

        now = utcnow()
        organization = Organization(name=payload.name, slug=slug, logo_url=payload.logo_url, settings={})
        session.add(organization)
        session.flush()
        session.add(
            OrganizationMember(
                organization_id=organization.id,
                user_id=user_id,
                role="OWNER",
                permissions=[],
                joined_at=now,
            )
        )
        session.add(
            OrganizationSubscription(
                organization_id=organization.id,
                plan="TRIAL",
                status="TRIAL",
                monthly_limit=TRIAL_MONTHLY_LIMIT,
                current_usage=0,
                max_businesses=TRIAL_MAX_BUSINESSES,
                max_members=TRIAL_MAX_MEMBERS,
                trial_ends_at=now + timedelta(days=get_settings().trial_days),
                billing_cycle_start=now,
                billing_cycle_end=now + timedelta(days=BILLING_CYCLE_DAYS),
            )
        )
        session.commit()

        logger.info("organization.created", extra={"organization_id": str(organization.id)})
        events.publish(
            {
                "event_type": "organization.created",
                "organization_id": str(organization.id),
                "slug": organization.slug,
                "owner_id": str(user_id),
            }
        )
        return self.find_one(session, user_id, organization.id)

    def find_my_organizations(self, session: Session, user_id: uuid.UUID) -> list[OrganizationListItem]:
        items = []
        for member in self.member_repository.memberships_for_user(session, user_id):
            organization = member.organization
            counts = self._counts(session, organization.id)
            items.append(
                OrganizationListItem(
                    **OrganizationRead.model_validate(organization).model_dump(),
                    my_role=member.role,
                    member_count=counts.members,
                    business_count=counts.businesses,
                )
            )
        return items

    def find_one(self, session: Session, user_id: uuid.UUID, organization_id: uuid.UUID) -> OrganizationDetail:
        organization = self.organization_repository.get_or_raise(session, organization_id)
        member = self._require_membership(session, organization_id, user_id)
        subscription = organization.subscription
        return OrganizationDetail(
            **OrganizationRead.model_validate(organization).model_dump(),
            subscription=OrganizationSubscriptionRead.model_validate(subscription) if subscription else None,
            my_role=member.role,
            my_permissions=get_permissions_for_role(member.role),
            counts=self._counts(session, organization_id),
        )

    def update_organization(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        payload: OrganizationUpdate,
    ) -> OrganizationDetail:
        organization = self.organization_repository.get_or_raise(session, organization_id)
        self._require_permission(session, organization_id, user_id, "organization:settings")

        changes = payload.model_dump(exclude_unset=True)
        new_slug = changes.get("slug")
        if new_slug and new_slug != organization.slug:
            if self.organization_repository.get_by_slug(session, new_slug) is not None:
                raise duplicate("Organization", "slug", new_slug)
        for key, value in changes.items():
            if value is not None:
                setattr(organization, key, value)
        session.add(organization)
        session.commit()

        events.publish({"event_type": "organization.updated", "organization_id": str(organization.id)})
        return self.find_one(session, user_id, organization_id)

    def remove_organization(self, session: Session, user_id: uuid.UUID, organization_id: uuid.UUID) -> MessageResponse:
        organization = self.organization_repository.get_or_raise(session, organization_id)
        self._require_permission(session, organization_id, user_id, "organization:delete")

        active_businesses = self._counts(session, organization_id).businesses
        if active_businesses > 0:
            raise not_allowed(
                "Cannot delete organization with active businesses",
                {"organizationId": str(organization_id), "businessCount": active_businesses},
            )
        self.organization_repository.soft_delete(session, organization)
        session.commit()

        logger.info("organization.deleted", extra={"organization_id": str(organization_id)})
        events.publish({"event_type": "organization.deleted", "organization_id": str(organization_id)})
        return MessageResponse(message="Organization deleted successfully")

    def get_members(self, session: Session, user_id: uuid.UUID, organization_id: uuid.UUID) -> list[MemberRead]:
        self.organization_repository.get_or_raise(session, organization_id)
        self._require_membership(session, organization_id, user_id)
        members = self.member_repository.active_members(session, organization_id)
        members.sort(key=lambda member: (-ROLE_HIERARCHY.get(member.role, 0), as_utc(member.joined_at)))
        return [MemberRead.model_validate(member) for member in members]

    def invite_member(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        payload: InviteMemberRequest,
    ) -> InvitationRead:
        organization = self.organization_repository.get_or_raise(session, organization_id)
        inviter = self._require_permission(session, organization_id, user_id, "member:invite")
        if not can_assign_role(inviter.role, payload.role):
            raise BusinessException(
                ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
                f"Role {inviter.role} cannot invite members as {payload.role}",
                {"role": payload.role},
            )

        email = payload.email.lower()
        invited_user = self.user_repository.get_by_email(session, email, include_deleted=False)
        if invited_user is not None and self.member_repository.find_membership(session, organization_id, invited_user.id):
            raise duplicate("OrganizationMember", "email", email)

        invitation = self.invitation_repository.get_for_email(session, organization_id, email)
        now = utcnow()
        if invitation is not None and invitation.accepted_at is None and as_utc(invitation.expires_at) > now:
            raise duplicate("Invitation", "email", email)

        subscription = organization.subscription
        member_count = self._counts(session, organization_id).members
        if subscription is not None and member_count >= subscription.max_members:
            raise BusinessException(
                ErrorCode.BUSINESS_QUOTA_EXCEEDED,
                f"Member limit reached ({subscription.max_members})",
                {"maxMembers": subscription.max_members, "currentMembers": member_count},
            )

        if invitation is None:
            invitation = Invitation(organization_id=organization_id, email=email)
        invitation.role = payload.role
        invitation.invited_by = user_id
        invitation.accepted_at = None
        self._refresh_token(invitation)
        session.add(invitation)
        session.commit()
        session.refresh(invitation)

        self._send_invitation(organization, invitation)
        return InvitationRead.model_validate(invitation)

    def accept_invitation(self, session: Session, user_id: uuid.UUID, token: str) -> MemberRead:
        invitation = self.invitation_repository.get_by_token(session, token)
        if invitation is None:
            raise not_found("Invitation")
        if invitation.accepted_at is not None:
            raise BusinessException(ErrorCode.BUSINESS_INVALID_STATE_TRANSITION, "Invitation has already been accepted")
        if as_utc(invitation.expires_at) <= utcnow():
            raise rule_violation("Invitation has expired", {"expiresAt": as_utc(invitation.expires_at).isoformat()})

        user = self.user_repository.get_or_raise(session, user_id)
        if user.email.lower() != invitation.email.lower():
            raise access_denied("Invitation", invitation.id)

        member = self.member_repository.find_membership(session, invitation.organization_id, user_id, include_deleted=True)
        if member is not None and member.deleted_at is None:
            raise duplicate("OrganizationMember", "user_id", user_id)

        now = utcnow()
        if member is None:
            member = OrganizationMember(organization_id=invitation.organization_id, user_id=user_id)
        member.role = invitation.role
        member.permissions = []
        member.invited_by = invitation.invited_by
        member.joined_at = now
        member.deleted_at = None
        invitation.accepted_at = now
        session.add_all([member, invitation])
        session.commit()
        session.refresh(member)

        events.publish(
            {
                "event_type": "organization.member.joined",
                "organization_id": str(invitation.organization_id),
                "user_id": str(user_id),
                "role": member.role,
            }
        )
        return MemberRead.model_validate(member)

    def update_member_role(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        member_id: uuid.UUID,
        payload: UpdateMemberRoleRequest,
    ) -> MemberRead:
        actor = self._require_permission(session, organization_id, user_id, "member:role")
        member = self._get_member(session, organization_id, member_id)
        if member.user_id == user_id:
            raise not_allowed("Cannot change your own role")
        if member.role == "OWNER":
            raise not_allowed("Cannot change the owner's role")
        if not can_assign_role(actor.role, payload.role) or compare_roles(actor.role, member.role) <= 0:
            raise BusinessException(
                ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
                f"Role {actor.role} cannot assign {payload.role}",
                {"role": payload.role},
            )

        previous = member.role
        member.role = payload.role
        session.add(member)
        session.commit()
        session.refresh(member)

        events.publish(
            {
                "event_type": "organization.member.role_changed",
                "organization_id": str(organization_id),
                "member_id": str(member.id),
                "from_role": previous,
                "to_role": member.role,
            }
        )
        return MemberRead.model_validate(member)

    def remove_member(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        member_id: uuid.UUID,
    ) -> MessageResponse:
        self._require_permission(session, organization_id, user_id, "member:remove")
        member = self._get_member(session, organization_id, member_id)
        if member.user_id == user_id:
            raise not_allowed("Cannot remove yourself, leave the organization instead")
        if member.role == "OWNER":
            raise not_allowed("Cannot remove the organization owner")

        self.member_repository.soft_delete(session, member)
        session.commit()
        events.publish(
            {
                "event_type": "organization.member.removed",
                "organization_id": str(organization_id),
                "member_id": str(member.id),
            }
        )
        return MessageResponse(message="Member removed successfully")

    def leave(self, session: Session, user_id: uuid.UUID, organization_id: uuid.UUID) -> MessageResponse:
        member = self._require_membership(session, organization_id, user_id)
        if member.role == "OWNER":
            raise not_allowed("Owner cannot leave the organization")
        self.member_repository.soft_delete(session, member)
        session.commit()
        events.publish(
            {"event_type": "organization.member.left", "organization_id": str(organization_id), "user_id": str(user_id)}
        )
        return MessageResponse(message="Left organization successfully")

    def get_pending_invitations(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
    ) -> list[InvitationRead]:
        self._require_permission(session, organization_id, user_id, "member:view")
        stmt = (
            select(Invitation)
            .where(
                Invitation.organization_id == organization_id,
                Invitation.accepted_at.is_(None),
                Invitation.expires_at > utcnow(),
            )
            .order_by(Invitation.created_at.desc())
        )
        return [InvitationRead.model_validate(row) for row in session.scalars(stmt).all()]

    def resend_invitation(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        invitation_id: uuid.UUID,
    ) -> InvitationRead:
        self._require_permission(session, organization_id, user_id, "member:invite")
        invitation = self._get_invitation(session, organization_id, invitation_id)
        if invitation.accepted_at is not None:
            raise BusinessException(ErrorCode.BUSINESS_INVALID_STATE_TRANSITION, "Invitation has already been accepted")

        self._refresh_token(invitation)
        session.add(invitation)
        session.commit()
        session.refresh(invitation)

        self._send_invitation(invitation.organization, invitation)
        return InvitationRead.model_validate(invitation)

    def cancel_invitation(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        invitation_id: uuid.UUID,
    ) -> MessageResponse:
        self._require_permission(session, organization_id, user_id, "member:invite")
        invitation = self._get_invitation(session, organization_id, invitation_id)
        session.delete(invitation)
        session.commit()
        return MessageResponse(message="Invitation canceled")

    def check_permission(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
        permission: str,
    ) -> PermissionCheck:
        member = self.member_repository.find_membership(session, organization_id, user_id)
        if member is None:
            return PermissionCheck(permission=permission, allowed=False)
        return PermissionCheck(permission=permission, allowed=has_permission(member.role, permission), role=member.role)

    def get_membership(
        self,
        session: Session,
        user_id: uuid.UUID,
        organization_id: uuid.UUID,
    ) -> OrganizationMember | None:
        return self.member_repository.find_membership(session, organization_id, user_id)

    def _require_membership(
        self,
        session: Session,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> OrganizationMember:
        member = self.member_repository.find_membership(session, organization_id, user_id)
        if member is None:
            raise access_denied("Organization", organization_id)
        return member

    def _require_permission(
        self,
        session: Session,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        permission: str,
    ) -> OrganizationMember:
        member = self._require_membership(session, organization_id, user_id)
        if not has_permission(member.role, permission):
            raise BusinessException(
                ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
                f"Missing permission: {permission}",
                {"permission": permission, "role": member.role},
            )
        return member

    def _get_member(self, session: Session, organization_id: uuid.UUID, member_id: uuid.UUID) -> OrganizationMember:
        member = self.member_repository.get(session, member_id)
        if member is None or member.organization_id != organization_id:
            raise not_found("OrganizationMember", member_id)
        return member

    def _get_invitation(self, session: Session, organization_id: uuid.UUID, invitation_id: uuid.UUID) -> Invitation:
        invitation = self.invitation_repository.get(session, invitation_id)
        if invitation is None or invitation.organization_id != organization_id:
            raise not_found("Invitation", invitation_id)
        return invitation

    def _counts(self, session: Session, organization_id: uuid.UUID) -> OrganizationCounts:
        members = session.scalar(
            select(func.count(OrganizationMember.id)).where(
                OrganizationMember.organization_id == organization_id,
                OrganizationMember.deleted_at.is_(None),
            )
        )
        businesses = session.scalar(
            select(func.count(Business.id)).where(
                Business.organization_id == organization_id,
                Business.deleted_at.is_(None),
            )
        )
        return OrganizationCounts(members=members or 0, businesses=businesses or 0)

    @staticmethod
    def _refresh_token(invitation: Invitation) -> None:
        invitation.token = secrets.token_hex(32)
        invitation.expires_at = utcnow() + timedelta(days=get_settings().invitation_expires_days)

    @staticmethod
    def _send_invitation(organization: Organization, invitation: Invitation) -> None:
        logger.info(
            "organization.invitation.sent",
            extra={"organization_id": str(organization.id), "resource_type": "invitation", "resource_id": str(invitation.id)},
        )
        events.publish(
            {
                "event_type": "organization.invitation.sent",
                "organization_id": str(organization.id),
                "organization_name": organization.name,
                "invitation_id": str(invitation.id),
                "email": invitation.email,
                "role": invitation.role,
                "token": invitation.token,
                "expires_at": as_utc(invitation.expires_at).isoformat(),
            }
        )


organizations_service = OrganizationsService()
