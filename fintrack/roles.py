"""
Role-based permission table.

Pure lookup, no I/O. Each role maps to the set of actions it may perform.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable


class Role(str, Enum):
    admin = "admin"
    user = "user"
    viewer = "viewer"


class Permission(str, Enum):
    create_transaction = "create:transaction"
    read_transaction = "read:transaction"
    update_transaction = "update:transaction"
    delete_transaction = "delete:transaction"
    share_transaction = "share:transaction"
    manage_users = "manage:users"
    manage_roles = "manage:roles"


_TRANSACTION_PERMISSIONS = (
    Permission.create_transaction,
    Permission.read_transaction,
    Permission.update_transaction,
    Permission.delete_transaction,
    Permission.share_transaction,
)

ROLE_PERMISSIONS: dict[Role, tuple[Permission, ...]] = {
    Role.admin: _TRANSACTION_PERMISSIONS
    + (Permission.manage_users, Permission.manage_roles),
    Role.user: _TRANSACTION_PERMISSIONS,
    Role.viewer: (Permission.read_transaction,),
}


def can_user_perform(role: Role, permission: Permission) -> bool:
    """True if the role grants the permission."""
    return permission in ROLE_PERMISSIONS[role]


def has_any_permission(role: Role, permissions: Iterable[Permission]) -> bool:
    return any(can_user_perform(role, p) for p in permissions)
