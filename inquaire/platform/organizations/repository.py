from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from inquaire.platform.organizations.models import Invitation, Organization, OrganizationMember
from inquaire.platform.security.repository import BaseRepository


class OrganizationRepository(BaseRepository[Organization]):
    model = Organization
    resource = "Organization"

    def get_by_slug(self, session: Session, slug: str) -> Organization | None:
        return session.scalar(select(Organization).where(Organization.slug == slug))


class OrganizationMemberRepository(BaseRepository[OrganizationMember]):
    model = OrganizationMember
    resource = "OrganizationMember"

    def find_membership(
        self,
        session: Session,
        organization_id: uuid.UUID,
        user_id: uuid.UUID,
        *,
        include_deleted: bool = False,
    ) -> OrganizationMember | None:
        stmt = self.query(include_deleted=include_deleted).where(
            OrganizationMember.organization_id == organization_id,
            OrganizationMember.user_id == user_id,
        )
        return session.scalar(stmt)

    def memberships_for_user(self, session: Session, user_id: uuid.UUID) -> list[OrganizationMember]:
        stmt = (
            self.query()
            .join(Organization, Organization.id == OrganizationMember.organization_id)
            .where(OrganizationMember.user_id == user_id, Organization.deleted_at.is_(None))
            .options(joinedload(OrganizationMember.organization))
            .order_by(OrganizationMember.joined_at.asc())
        )
        return list(session.scalars(stmt).unique().all())

    def active_members(self, session: Session, organization_id: uuid.UUID) -> list[OrganizationMember]:
        stmt = (
            self.query()
            .where(OrganizationMember.organization_id == organization_id)
            .options(joinedload(OrganizationMember.user))
        )
        return list(session.scalars(stmt).unique().all())


class InvitationRepository(BaseRepository[Invitation]):
    model = Invitation
    resource = "Invitation"

    def get_by_token(self, session: Session, token: str) -> Invitation | None:
        return session.scalar(select(Invitation).where(Invitation.token == token))

    def get_for_email(self, session: Session, organization_id: uuid.UUID, email: str) -> Invitation | None:
        stmt = select(Invitation).where(Invitation.organization_id == organization_id, Invitation.email == email)
        return session.scalar(stmt)
