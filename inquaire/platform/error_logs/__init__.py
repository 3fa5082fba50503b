from inquaire.platform.error_logs.models import ErrorLog
from inquaire.platform.error_logs.schemas import ErrorLogRead, ErrorLogStats

__all__ = ["ErrorLog", "ErrorLogRead", "ErrorLogStats"]
