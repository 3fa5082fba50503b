from __future__ import annotations

from inquaire.platform.organizations.permissions import (
    ALL_PERMISSIONS,
    can_assign_role,
    compare_roles,
    get_permissions_for_role,
    has_all_permissions,
    has_any_permission,
    has_permission,
)


def test_owner_holds_every_permission() -> None:
    assert get_permissions_for_role("OWNER") == list(ALL_PERMISSIONS)
    assert has_permission("OWNER", "organization:delete")
    assert not has_permission("ADMIN", "organization:delete")


def test_lower_roles_are_restricted() -> None:
    assert has_permission("MANAGER", "business:create")
    assert not has_permission("MANAGER", "member:invite")
    assert has_all_permissions("MEMBER", ["inquiry:view", "inquiry:reply"])
    assert not has_permission("MEMBER", "business:create")
    assert not has_any_permission("VIEWER", ["inquiry:reply", "template:manage"])
    assert get_permissions_for_role("UNKNOWN") == []


def test_role_ordering() -> None:
    assert compare_roles("OWNER", "ADMIN") > 0
    assert compare_roles("MEMBER", "MEMBER") == 0
    assert compare_roles("VIEWER", "MANAGER") < 0


def test_role_assignment_rules() -> None:
    assert can_assign_role("OWNER", "ADMIN")
    assert not can_assign_role("OWNER", "OWNER")
    assert can_assign_role("ADMIN", "MANAGER")
    assert not can_assign_role("ADMIN", "ADMIN")
    assert not can_assign_role("MANAGER", "VIEWER")
    assert not can_assign_role("OWNER", "SUPERUSER")
