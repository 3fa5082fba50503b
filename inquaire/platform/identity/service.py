from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from inquaire import events
from inquaire.core.config import get_settings
from inquaire.core.database import as_utc, utcnow
from inquaire.core.errors import BusinessException, ErrorCode, duplicate
from inquaire.core.security import (
    create_access_token,
    ensure_strong_password,
    hash_secret,
    lookup_hash,
    new_refresh_token,
    verify_secret,
)
from inquaire.platform.identity.models import RefreshToken, User
from inquaire.platform.identity.repository import RefreshTokenRepository, UserRepository
from inquaire.platform.identity.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    OrganizationSummary,
    ProfileUpdate,
    SignupRequest,
    TokenResponse,
    UserCreate,
    UserDetail,
    UserListResponse,
    UserOrganization,
    UserRead,
    UserRoleUpdate,
    UserStats,
    UserUpdate,
)
from inquaire.platform.organizations.permissions import get_permissions_for_role
from inquaire.platform.organizations.repository import OrganizationMemberRepository

logger = logging.getLogger("inquaire.identity")

ACTIVE_WINDOW_DAYS = 30


def user_organizations(session: Session, user_id: uuid.UUID) -> list[UserOrganization]:
    memberships = OrganizationMemberRepository().memberships_for_user(session, user_id)
    return [
        UserOrganization(
            organization=OrganizationSummary.model_validate(member.organization),
            role=member.role,
            permissions=list(member.permissions or get_permissions_for_role(member.role)),
        )
        for member in memberships
    ]


@dataclass(slots=True)
class AuthService:
    user_repository: UserRepository = UserRepository()
    token_repository: RefreshTokenRepository = RefreshTokenRepository()

    def signup(self, session: Session, payload: SignupRequest) -> TokenResponse:
        email = payload.email.lower()
        if self.user_repository.get_by_email(session, email) is not None:
            raise BusinessException(ErrorCode.AUTH_EMAIL_ALREADY_EXISTS, context={"email": email})
        ensure_strong_password(payload.password)

        user = User(email=email, password_hash=hash_secret(payload.password), name=payload.name, role="USER")
        session.add(user)
        session.flush()
        response = self._issue_tokens(session, user)
        session.commit()

        logger.info("user.registered", extra={"resource_type": "user", "resource_id": str(user.id)})
        events.publish({"event_type": "user.registered", "user_id": str(user.id), "email": user.email})
        return response

    def login(self, session: Session, payload: LoginRequest) -> LoginResponse:
        user = self.user_repository.get_by_email(session, payload.email)
        if user is None or user.deleted_at is not None or not verify_secret(payload.password, user.password_hash):
            raise BusinessException(ErrorCode.AUTH_INVALID_CREDENTIALS)

        user.last_login_at = utcnow()
        session.add(user)
        tokens = self._issue_tokens(session, user)
        session.commit()
        session.refresh(user)

        logger.info("user.logged_in", extra={"resource_type": "user", "resource_id": str(user.id)})
        return LoginResponse(
            **tokens.model_dump(exclude={"user"}),
            user=UserRead.model_validate(user),
            organizations=user_organizations(session, user.id),
        )

    def refresh(self, session: Session, refresh_token: str) -> TokenResponse:
        stored = self.token_repository.get_by_lookup(session, lookup_hash(refresh_token))
        if stored is None or stored.revoked_at is not None:
            raise BusinessException(ErrorCode.AUTH_INVALID_REFRESH_TOKEN)
        if as_utc(stored.expires_at) <= utcnow():
            session.delete(stored)
            session.commit()
            raise BusinessException(ErrorCode.AUTH_REFRESH_TOKEN_EXPIRED)
        if not verify_secret(refresh_token, stored.token_hash):
            raise BusinessException(ErrorCode.AUTH_INVALID_REFRESH_TOKEN)

        user = self.user_repository.get(session, stored.user_id)
        if user is None:
            raise BusinessException(ErrorCode.AUTH_INVALID_REFRESH_TOKEN)

        session.delete(stored)
        response = self._issue_tokens(session, user)
        session.commit()
        return response

    def logout(self, session: Session, refresh_token: str) -> MessageResponse:
        stored = self.token_repository.get_by_lookup(session, lookup_hash(refresh_token))
        if stored is None or not verify_secret(refresh_token, stored.token_hash):
            raise BusinessException(ErrorCode.VALIDATION_INVALID_INPUT, "Invalid refresh token")
        session.delete(stored)
        session.commit()
        logger.info("user.logged_out", extra={"resource_type": "user", "resource_id": str(stored.user_id)})
        return MessageResponse(message="Logged out successfully")

    def profile(self, session: Session, user_id: uuid.UUID) -> UserRead:
        return UserRead.model_validate(self.user_repository.get_or_raise(session, user_id))

    def update_profile(self, session: Session, user_id: uuid.UUID, payload: ProfileUpdate) -> UserRead:
        user = self.user_repository.get_or_raise(session, user_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(user, key, value)
        session.add(user)
        session.commit()
        session.refresh(user)
        return UserRead.model_validate(user)

    def change_password(self, session: Session, user_id: uuid.UUID, payload: ChangePasswordRequest) -> MessageResponse:
        user = self.user_repository.get_or_raise(session, user_id)
        if not verify_secret(payload.current_password, user.password_hash):
            raise BusinessException(ErrorCode.AUTH_INVALID_CREDENTIALS, "Current password is incorrect")
        ensure_strong_password(payload.new_password)

        user.password_hash = hash_secret(payload.new_password)
        session.add(user)
        for token in list(user.refresh_tokens):
            session.delete(token)
        session.commit()

        logger.info("user.password_changed", extra={"resource_type": "user", "resource_id": str(user.id)})
        events.publish({"event_type": "user.password_changed", "user_id": str(user.id)})
        return MessageResponse(message="Password changed successfully")

    def _issue_tokens(self, session: Session, user: User) -> TokenResponse:
        settings = get_settings()
        access_token, expires_in = create_access_token(user.id, user.email, user.role)
        refresh_token = new_refresh_token()
        session.add(
            RefreshToken(
                user_id=user.id,
                token_hash=hash_secret(refresh_token),
                lookup_hash=lookup_hash(refresh_token),
                expires_at=utcnow() + timedelta(days=settings.refresh_token_expires_days),
            )
        )
        session.flush()
        return TokenResponse(
            user=UserRead.model_validate(user),
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
        )


@dataclass(slots=True)
class UsersService:
    """System-level user administration."""

    user_repository: UserRepository = UserRepository()

    def create_user(self, session: Session, payload: UserCreate) -> UserRead:
        email = payload.email.lower()
        if self.user_repository.get_by_email(session, email) is not None:
            raise duplicate("User", "email", email)
        ensure_strong_password(payload.password)

        data = payload.model_dump(exclude={"password"})
        data["email"] = email
        user = User(**data, password_hash=hash_secret(payload.password))
        session.add(user)
        session.commit()
        session.refresh(user)
        events.publish({"event_type": "user.created", "user_id": str(user.id), "role": user.role})
        return UserRead.model_validate(user)

    def list_users(
        self,
        session: Session,
        *,
        search: str | None = None,
        role: str | None = None,
        include_deleted: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> UserListResponse:
        stmt = self.user_repository.query(include_deleted=include_deleted)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
        if role:
            stmt = stmt.where(User.role == role)

        total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0
        rows = session.scalars(stmt.order_by(User.created_at.desc()).offset(offset).limit(limit)).all()
        return UserListResponse(
            data=[UserRead.model_validate(row) for row in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    def stats(self, session: Session) -> UserStats:
        active = User.deleted_at.is_(None)
        total = session.scalar(select(func.count(User.id)).where(active)) or 0
        by_role = {
            role: count
            for role, count in session.execute(select(User.role, func.count(User.id)).where(active).group_by(User.role)).all()
        }
        since = utcnow() - timedelta(days=ACTIVE_WINDOW_DAYS)
        recent = session.scalar(select(func.count(User.id)).where(active, User.last_login_at >= since)) or 0
        return UserStats(total=total, by_role=by_role, active_last_30_days=recent)

    def get_user(self, session: Session, user_id: uuid.UUID) -> UserDetail:
        user = self.user_repository.get_or_raise(session, user_id)
        return UserDetail(
            **UserRead.model_validate(user).model_dump(),
            organizations=user_organizations(session, user.id),
        )

    def update_user(self, session: Session, user_id: uuid.UUID, payload: UserUpdate) -> UserRead:
        user = self.user_repository.get_or_raise(session, user_id)
        changes = payload.model_dump(exclude_unset=True)
        if changes.get("email"):
            email = changes["email"].lower()
            existing = self.user_repository.get_by_email(session, email)
            if existing is not None and existing.id != user.id:
                raise duplicate("User", "email", email)
            changes["email"] = email
        for key, value in changes.items():
            setattr(user, key, value)
        session.add(user)
        session.commit()
        session.refresh(user)
        return UserRead.model_validate(user)

    def update_role(self, session: Session, user_id: uuid.UUID, payload: UserRoleUpdate) -> UserRead:
        user = self.user_repository.get_or_raise(session, user_id)
        previous = user.role
        user.role = payload.role
        session.add(user)
        session.commit()
        session.refresh(user)
        events.publish(
            {"event_type": "user.role_changed", "user_id": str(user.id), "from_role": previous, "to_role": user.role}
        )
        return UserRead.model_validate(user)

    def delete_user(self, session: Session, user_id: uuid.UUID) -> MessageResponse:
        user = self.user_repository.get_or_raise(session, user_id)
        self.user_repository.soft_delete(session, user)
        session.commit()
        events.publish({"event_type": "user.deleted", "user_id": str(user.id)})
        return MessageResponse(message="User deleted successfully")


auth_service = AuthService()
users_service = UsersService()
