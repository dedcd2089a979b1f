"""Pure role and permission policy.

Every function here is total: unknown roles or permission strings fail
closed (``False`` or an empty result) and are logged at WARNING instead of
raising into callers.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .registry import PERMISSION_REGISTRY, PERMISSIONS, ROLE_HIERARCHY, ROLE_REGISTRY
from .types import Permission, PermissionDef, Role

logger = logging.getLogger(__name__)

RoleLike = Role | str | None
PermissionLike = Permission | str


def coerce_role(value: RoleLike) -> Role | None:
    """Return the matching ``Role`` or ``None`` for missing/unknown values."""

    if value is None:
        return None
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        logger.warning("rbac.role.unknown", extra={"role": str(value)})
        return None


def coerce_permission(value: PermissionLike) -> Permission | None:
    if isinstance(value, Permission):
        return value
    try:
        return Permission(str(value).strip())
    except ValueError:
        logger.warning("rbac.permission.unknown", extra={"permission": str(value)})
        return None


def permissions_for(role: RoleLike) -> frozenset[Permission]:
    resolved = coerce_role(role)
    if resolved is None:
        return frozenset()
    return ROLE_REGISTRY[resolved].permissions


def has_permission(role: RoleLike, permission: PermissionLike) -> bool:
    resolved = coerce_permission(permission)
    if resolved is None:
        return False
    return resolved in permissions_for(role)


def validate_access(role: RoleLike, required_permissions: Iterable[PermissionLike]) -> bool:
    """Return ``True`` when the role holds *any* of the required permissions.

    An empty requirement list grants nothing.
    """

    granted = permissions_for(role)
    if not granted:
        return False
    for permission in required_permissions:
        resolved = coerce_permission(permission)
        if resolved is not None and resolved in granted:
            return True
    return False


def role_level(role: RoleLike) -> int:
    resolved = coerce_role(role)
    if resolved is None:
        return 0
    return ROLE_HIERARCHY[resolved]


def role_outranks(candidate: RoleLike, required: RoleLike) -> bool:
    """Strict comparison: a role never outranks itself."""

    candidate_level = role_level(candidate)
    required_level = role_level(required)
    if candidate_level == 0 or required_level == 0:
        return False
    return candidate_level > required_level


def role_at_least(candidate: RoleLike, required: RoleLike) -> bool:
    candidate_level = role_level(candidate)
    required_level = role_level(required)
    if candidate_level == 0 or required_level == 0:
        return False
    return candidate_level >= required_level


def can_access_role(role: RoleLike, target: RoleLike) -> bool:
    """Check the explicit accessible-role list of ``role``."""

    resolved = coerce_role(role)
    resolved_target = coerce_role(target)
    if resolved is None or resolved_target is None:
        return False
    return resolved_target in ROLE_REGISTRY[resolved].accessible_roles


def can_manage_user(manager_role: RoleLike, target_role: RoleLike) -> bool:
    """Users may only manage users strictly below them."""

    return role_outranks(manager_role, target_role)


def can_access_role_content(role: RoleLike, content_role: RoleLike) -> bool:
    """Content for a role is visible to that role and everything above it."""

    return role_at_least(role, content_role)


def can_access_training(role: RoleLike, training_role: RoleLike) -> bool:
    return can_access_role_content(role, training_role)


def accessible_roles(role: RoleLike) -> tuple[Role, ...]:
    """Roles at or below ``role`` in hierarchy order."""

    level = role_level(role)
    if level == 0:
        return ()
    return tuple(item for item in Role if ROLE_HIERARCHY[item] <= level)


def role_permission_defs(role: RoleLike) -> tuple[PermissionDef, ...]:
    granted = permissions_for(role)
    return tuple(definition for definition in PERMISSIONS if definition.key in granted)


def permissions_by_category() -> dict[str, list[PermissionDef]]:
    grouped: dict[str, list[PermissionDef]] = {}
    for definition in PERMISSIONS:
        grouped.setdefault(definition.category.value, []).append(definition)
    return grouped


def describe_permission(permission: PermissionLike) -> PermissionDef | None:
    resolved = coerce_permission(permission)
    if resolved is None:
        return None
    return PERMISSION_REGISTRY[resolved]


__all__ = [
    "PermissionLike",
    "RoleLike",
    "accessible_roles",
    "can_access_role",
    "can_access_role_content",
    "can_access_training",
    "can_manage_user",
    "coerce_permission",
    "coerce_role",
    "describe_permission",
    "has_permission",
    "permissions_by_category",
    "permissions_for",
    "role_at_least",
    "role_level",
    "role_outranks",
    "role_permission_defs",
    "validate_access",
]
