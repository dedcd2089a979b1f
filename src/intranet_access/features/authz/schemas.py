"""Authorization request and decision types."""

from __future__ import annotations

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field

from intranet_access.core.rbac.types import Permission, Role


class DenialReason(str, enum.Enum):
    UNKNOWN_IDENTITY = "unknown_identity"
    INACTIVE = "inactive"
    MISSING_PERMISSION = "missing_permission"
    ROLE_REQUIRED = "role_required"
    ROLE_NOT_ALLOWED = "role_not_allowed"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class AccessRequirement:
    """Clauses that must all hold; an omitted or empty clause is not checked.

    ``permissions`` is satisfied by *any* listed permission. ``role`` is
    satisfied by that role or a higher one. ``allowed_roles`` is exact
    membership; the hierarchy does not apply.
    """

    permission: Permission | str | None = None
    permissions: tuple[Permission | str, ...] = field(default=())
    role: Role | str | None = None
    allowed_roles: tuple[Role | str, ...] = field(default=())

    def __post_init__(self) -> None:
        # Accept any iterable (lists from callers) but store tuples.
        object.__setattr__(self, "permissions", tuple(self.permissions or ()))
        object.__setattr__(self, "allowed_roles", tuple(self.allowed_roles or ()))

    @classmethod
    def of(
        cls,
        *,
        permission: Permission | str | None = None,
        permissions: Iterable[Permission | str] = (),
        role: Role | str | None = None,
        allowed_roles: Iterable[Role | str] = (),
    ) -> AccessRequirement:
        return cls(
            permission=permission,
            permissions=tuple(permissions),
            role=role,
            allowed_roles=tuple(allowed_roles),
        )

    @property
    def is_empty(self) -> bool:
        return (
            self.permission is None
            and not self.permissions
            and self.role is None
            and not self.allowed_roles
        )

    def describe(self) -> dict[str, object]:
        described: dict[str, object] = {}
        if self.permission is not None:
            described["required_permission"] = _plain(self.permission)
        if self.permissions:
            described["required_permissions"] = [_plain(item) for item in self.permissions]
        if self.role is not None:
            described["required_role"] = _plain(self.role)
        if self.allowed_roles:
            described["allowed_roles"] = [_plain(item) for item in self.allowed_roles]
        return described


def _plain(value: object) -> str:
    if isinstance(value, enum.Enum):
        return str(value.value)
    return str(value)


@dataclass(frozen=True, slots=True)
class AuthorizationDecision:
    """Outcome of an authorization check: ``Authorized`` or ``Denied(reason)``."""

    allowed: bool
    reason: DenialReason | None = None
    role: Role | None = None
    detail: str | None = None

    @classmethod
    def authorized(cls, role: Role | None) -> AuthorizationDecision:
        return cls(allowed=True, role=role)

    @classmethod
    def denied(
        cls,
        reason: DenialReason,
        *,
        role: Role | None = None,
        detail: str | None = None,
    ) -> AuthorizationDecision:
        return cls(allowed=False, reason=reason, role=role, detail=detail)

    @property
    def is_authorized(self) -> bool:
        return self.allowed

    @property
    def is_denied(self) -> bool:
        return not self.allowed

    def __bool__(self) -> bool:
        return self.allowed


@dataclass(frozen=True, slots=True)
class PermissionSet:
    """Role and effective permissions for one identity."""

    role: Role | None = None
    permissions: frozenset[Permission] = frozenset()

    def __contains__(self, permission: object) -> bool:
        try:
            key = Permission(permission)
        except ValueError:
            return False
        return key in self.permissions

    def sorted_keys(self) -> list[str]:
        return sorted(item.value for item in self.permissions)


EMPTY_PERMISSIONS = PermissionSet()

__all__ = [
    "AccessRequirement",
    "AuthorizationDecision",
    "DenialReason",
    "EMPTY_PERMISSIONS",
    "PermissionSet",
]
