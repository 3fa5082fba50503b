from __future__ import annotations

from inquaire.platform.error_logs.models import ErrorLog
from inquaire.platform.security.repository import BaseRepository


class ErrorLogRepository(BaseRepository[ErrorLog]):
    model = ErrorLog
    resource = "ErrorLog"
