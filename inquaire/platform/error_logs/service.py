from __future__ import annotations

import logging
import traceback
import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inquaire.context import get_correlation_id
from inquaire.core.database import utcnow
from inquaire.core.pagination import PageParams, PaginatedResponse, paginate
from inquaire.platform.error_logs.models import ErrorLog
from inquaire.platform.error_logs.repository import ErrorLogRepository
from inquaire.platform.error_logs.schemas import ErrorLogRead, ErrorLogStats

logger = logging.getLogger("inquaire.error_logs")


@dataclass(slots=True)
class ErrorLogsService:
    repository: ErrorLogRepository = ErrorLogRepository()

    def record(
        self,
        session: Session,
        error_type: str,
        exc: BaseException,
        *,
        context: dict[str, Any] | None = None,
        user_id: uuid.UUID | None = None,
    ) -> ErrorLog:
        """Persist a failure. The session is rolled back first so a broken transaction cannot block the write."""

        session.rollback()
        entry = ErrorLog(
            error_type=error_type,
            error_message=str(exc) or type(exc).__name__,
            stack_trace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            context=context,
            user_id=user_id,
            correlation_id=get_correlation_id(),
        )
        session.add(entry)
        session.commit()
        logger.error(
            "error_log.recorded",
            extra={"error_log_id": str(entry.id), "event_type": error_type, "error": str(exc)},
        )
        return entry

    def list_logs(
        self,
        session: Session,
        params: PageParams,
        *,
        error_type: str | None = None,
        resolved: bool | None = None,
        user_id: uuid.UUID | None = None,
    ) -> PaginatedResponse[ErrorLogRead]:
        stmt = self.repository.query()
        if error_type:
            stmt = stmt.where(ErrorLog.error_type == error_type)
        if resolved is not None:
            stmt = stmt.where(ErrorLog.resolved == resolved)
        if user_id is not None:
            stmt = stmt.where(ErrorLog.user_id == user_id)
        rows, meta = paginate(session, stmt.order_by(ErrorLog.created_at.desc(), ErrorLog.id), params)
        return PaginatedResponse[ErrorLogRead](
            data=[ErrorLogRead.model_validate(row) for row in rows],
            pagination=meta,
        )

    def get_log(self, session: Session, log_id: uuid.UUID) -> ErrorLogRead:
        return ErrorLogRead.model_validate(self.repository.get_or_raise(session, log_id))

    def resolve(self, session: Session, log_id: uuid.UUID) -> ErrorLogRead:
        entry = self.repository.get_or_raise(session, log_id)
        if not entry.resolved:
            entry.resolved = True
            entry.resolved_at = utcnow()
            session.add(entry)
            session.commit()
            session.refresh(entry)
        return ErrorLogRead.model_validate(entry)

    def stats(self, session: Session) -> ErrorLogStats:
        total = session.scalar(select(func.count(ErrorLog.id))) or 0
        unresolved = session.scalar(select(func.count(ErrorLog.id)).where(ErrorLog.resolved.is_(False))) or 0
        by_type = dict(
            session.execute(select(ErrorLog.error_type, func.count(ErrorLog.id)).group_by(ErrorLog.error_type)).all()
        )
        return ErrorLogStats(total=total, unresolved=unresolved, resolved=total - unresolved, by_type=by_type)


error_logs_service = ErrorLogsService()
