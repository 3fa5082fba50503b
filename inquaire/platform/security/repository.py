from __future__ import annotations

import uuid
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from inquaire.core.database import Base, utcnow
from inquaire.core.errors import not_found

ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]
    resource = ""

    @property
    def soft_deletes(self) -> bool:
        return hasattr(self.model, "deleted_at")

    def query(self, *, include_deleted: bool = False) -> Select[Any]:
        stmt = select(self.model)
        if self.soft_deletes and not include_deleted:
            stmt = stmt.where(self.model.deleted_at.is_(None))  # type: ignore[attr-defined]
        return stmt

    def get(self, session: Session, item_id: uuid.UUID, *, include_deleted: bool = False) -> ModelT | None:
        stmt = self.query(include_deleted=include_deleted).where(self.model.id == item_id)  # type: ignore[attr-defined]
        return session.scalar(stmt)

    def get_or_raise(self, session: Session, item_id: uuid.UUID, *, include_deleted: bool = False) -> ModelT:
        row = self.get(session, item_id, include_deleted=include_deleted)
        if row is None:
            raise not_found(self.resource, item_id)
        return row

    def soft_delete(self, session: Session, row: ModelT) -> ModelT:
        row.deleted_at = utcnow()  # type: ignore[attr-defined]
        session.add(row)
        return row
