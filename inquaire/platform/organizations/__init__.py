from inquaire.platform.organizations.models import (
    Invitation,
    Organization,
    OrganizationMember,
    OrganizationSubscription,
)
from inquaire.platform.organizations.permissions import (
    ROLE_HIERARCHY,
    ROLE_PERMISSIONS,
    can_assign_role,
    compare_roles,
    get_permissions_for_role,
    has_all_permissions,
    has_any_permission,
    has_permission,
)

__all__ = [
    "Organization",
    "OrganizationMember",
    "Invitation",
    "OrganizationSubscription",
    "ROLE_HIERARCHY",
    "ROLE_PERMISSIONS",
    "has_permission",
    "has_any_permission",
    "has_all_permissions",
    "get_permissions_for_role",
    "compare_roles",
    "can_assign_role",
]
