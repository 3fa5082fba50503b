from __future__ import annotations

from collections.abc import Iterable
from typing import Literal

OrganizationRole = Literal["OWNER", "ADMIN", "MANAGER", "MEMBER", "VIEWER"]

ROLE_HIERARCHY: dict[str, int] = {
    "VIEWER": 1,
    "MEMBER": 2,
    "MANAGER": 3,
    "ADMIN": 4,
    "OWNER": 5,
}

ALL_PERMISSIONS: tuple[str, ...] = (
    "organization:view",
    "organization:settings",
    "organization:billing",
    "organization:delete",
    "member:view",
    "member:invite",
    "member:remove",
    "member:role",
    "business:view",
    "business:create",
    "business:update",
    "business:delete",
    "channel:view",
    "channel:manage",
    "inquiry:view",
    "inquiry:reply",
    "inquiry:assign",
    "inquiry:status",
    "inquiry:delete",
    "customer:view",
    "customer:update",
    "customer:delete",
    "template:view",
    "template:manage",
    "stats:view",
    "stats:detailed",
    "stats:export",
)

_READ_ONLY = (
    "organization:view",
    "member:view",
    "business:view",
    "channel:view",
    "inquiry:view",
    "customer:view",
    "template:view",
    "stats:view",
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "OWNER": frozenset(ALL_PERMISSIONS),
    "ADMIN": frozenset(p for p in ALL_PERMISSIONS if p != "organization:delete"),
    "MANAGER": frozenset(
        (
            "organization:view",
            "member:view",
            "business:view",
            "business:create",
            "business:update",
            "channel:view",
            "channel:manage",
            "inquiry:view",
            "inquiry:reply",
            "inquiry:assign",
            "inquiry:status",
            "inquiry:delete",
            "customer:view",
            "customer:update",
            "customer:delete",
            "template:view",
            "template:manage",
            "stats:view",
            "stats:detailed",
            "stats:export",
        )
    ),
    "MEMBER": frozenset(
        (
            *_READ_ONLY,
            "inquiry:reply",
            "inquiry:status",
            "customer:update",
        )
    ),
    "VIEWER": frozenset(_READ_ONLY),
}


def get_permissions_for_role(role: str) -> list[str]:
    granted = ROLE_PERMISSIONS.get(role, frozenset())
    return [permission for permission in ALL_PERMISSIONS if permission in granted]


def has_permission(role: str, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def has_any_permission(role: str, permissions: Iterable[str]) -> bool:
    return any(has_permission(role, permission) for permission in permissions)


def has_all_permissions(role: str, permissions: Iterable[str]) -> bool:
    return all(has_permission(role, permission) for permission in permissions)


def role_level(role: str) -> int:
    return ROLE_HIERARCHY.get(role, 0)


def compare_roles(role_a: str, role_b: str) -> int:
    """Positive when ``role_a`` outranks ``role_b``, zero when equal."""
    return role_level(role_a) - role_level(role_b)


def can_assign_role(assigner_role: str, target_role: str) -> bool:
    if target_role not in ROLE_HIERARCHY:
        return False
    if assigner_role == "OWNER":
        return target_role != "OWNER"
    if assigner_role == "ADMIN":
        return role_level(target_role) < role_level("ADMIN")
    return False
