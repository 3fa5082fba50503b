from collections.abc import Callable

from fastapi import Depends

from inquaire.core.auth import AuthUser, get_authenticated_user
from inquaire.core.errors import BusinessException, ErrorCode

SYSTEM_ADMIN_ROLES = ("ADMIN", "SUPER_ADMIN")


def require_system_roles(*roles: str) -> Callable[[AuthUser], AuthUser]:
    """Gate an endpoint on the platform-wide user role carried in the access token."""

    allowed = set(roles or SYSTEM_ADMIN_ROLES)

    async def checker(user: AuthUser = Depends(get_authenticated_user)) -> AuthUser:
        if not allowed.intersection(user.roles):
            raise BusinessException(
                ErrorCode.AUTH_INSUFFICIENT_PERMISSIONS,
                f"Missing role: one of {', '.join(sorted(allowed))}",
                {"requiredRoles": sorted(allowed)},
            )
        return user

    return checker


require_system_admin = require_system_roles(*SYSTEM_ADMIN_ROLES)
