from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inquaire.platform.identity.models import RefreshToken, User
from inquaire.platform.security.repository import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User
    resource = "User"

    def get_by_email(self, session: Session, email: str, *, include_deleted: bool = True) -> User | None:
        stmt = self.query(include_deleted=include_deleted).where(func.lower(User.email) == email.lower())
        return session.scalar(stmt)


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    model = RefreshToken
    resource = "RefreshToken"

    def get_by_lookup(self, session: Session, token_lookup_hash: str) -> RefreshToken | None:
        return session.scalar(select(RefreshToken).where(RefreshToken.lookup_hash == token_lookup_hash))
