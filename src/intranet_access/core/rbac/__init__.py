"""Role and permission catalogue plus the pure policy over it."""

from .policy import (
    accessible_roles,
    can_access_role,
    can_access_role_content,
    can_access_training,
    can_manage_user,
    coerce_permission,
    coerce_role,
    has_permission,
    permissions_by_category,
    permissions_for,
    role_outranks,
    role_permission_defs,
    validate_access,
)
from .registry import PERMISSION_REGISTRY, PERMISSIONS, ROLE_HIERARCHY, ROLE_REGISTRY, ROLES
from .types import Permission, PermissionCategory, PermissionDef, Role, RoleDef, UserStatus

__all__ = [
    "PERMISSION_REGISTRY",
    "PERMISSIONS",
    "Permission",
    "PermissionCategory",
    "PermissionDef",
    "ROLES",
    "ROLE_HIERARCHY",
    "ROLE_REGISTRY",
    "Role",
    "RoleDef",
    "UserStatus",
    "accessible_roles",
    "can_access_role",
    "can_access_role_content",
    "can_access_training",
    "can_manage_user",
    "coerce_permission",
    "coerce_role",
    "has_permission",
    "permissions_by_category",
    "permissions_for",
    "role_outranks",
    "role_permission_defs",
    "validate_access",
]
