"""RBAC type definitions used across the stack."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Role(str, enum.Enum):
    """Privilege tiers, declared from lowest to highest."""

    AGENT = "agent"
    MANAGER = "manager"
    ADMIN = "admin"
    OWNER = "owner"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class PermissionCategory(str, enum.Enum):
    CRM = "CRM"
    USER_MANAGEMENT = "User Management"
    TRAINING = "Training"
    ANALYTICS = "Analytics"
    SYSTEM = "System"


class Permission(str, enum.Enum):
    """Closed catalogue of capability tokens."""

    CRM_ACCESS = "crm.access"
    CRM_CLIENTS_VIEW = "crm.clients.view"
    CRM_CLIENTS_CREATE = "crm.clients.create"
    CRM_CLIENTS_EDIT = "crm.clients.edit"
    CRM_CLIENTS_DELETE = "crm.clients.delete"
    CRM_CLIENTS_ASSIGN = "crm.clients.assign"
    CRM_CLIENTS_VIEW_ALL = "crm.clients.viewAll"

    USERS_VIEW = "users.view"
    USERS_CREATE = "users.create"
    USERS_EDIT = "users.edit"
    USERS_DELETE = "users.delete"
    USERS_PERMISSIONS = "users.permissions"

    TRAINING_AGENT = "training.agent"
    TRAINING_MANAGER = "training.manager"
    TRAINING_ADMIN = "training.admin"
    TRAINING_OWNER = "training.owner"

    ANALYTICS_VIEW = "analytics.view"
    ANALYTICS_EXPORT = "analytics.export"

    SYSTEM_CONFIG = "system.config"
    SYSTEM_BACKUP = "system.backup"
    SYSTEM_SECURITY = "system.security"
    SYSTEM_INTEGRATION = "system.integration"


@dataclass(frozen=True)
class PermissionDef:
    """Static permission definition."""

    key: Permission
    category: PermissionCategory
    label: str
    description: str


@dataclass(frozen=True)
class RoleDef:
    """Static role definition: permission grants plus accessible roles."""

    role: Role
    label: str
    description: str
    permissions: frozenset[Permission]
    accessible_roles: tuple[Role, ...]


__all__ = [
    "Permission",
    "PermissionCategory",
    "PermissionDef",
    "Role",
    "RoleDef",
    "UserStatus",
]
