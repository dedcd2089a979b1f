"""Canonical permission catalogue and role table.

The registry is validated at import time: a role without a definition or a
definition referencing an unknown permission is a configuration error.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from .types import Permission, PermissionCategory, PermissionDef, Role, RoleDef

ROLE_HIERARCHY: Mapping[Role, int] = MappingProxyType(
    {
        Role.AGENT: 1,
        Role.MANAGER: 2,
        Role.ADMIN: 3,
        Role.OWNER: 4,
    }
)


def _permission(
    key: Permission,
    category: PermissionCategory,
    label: str,
    description: str,
) -> PermissionDef:
    return PermissionDef(key=key, category=category, label=label, description=description)


PERMISSIONS: tuple[PermissionDef, ...] = (
    # CRM ---------------------------------------------------------------
    _permission(
        Permission.CRM_ACCESS,
        PermissionCategory.CRM,
        "CRM Access",
        "Access the CRM system and features.",
    ),
    _permission(
        Permission.CRM_CLIENTS_VIEW,
        PermissionCategory.CRM,
        "View Clients",
        "View client information and details.",
    ),
    _permission(
        Permission.CRM_CLIENTS_CREATE,
        PermissionCategory.CRM,
        "Create Clients",
        "Add new clients to the system.",
    ),
    _permission(
        Permission.CRM_CLIENTS_EDIT,
        PermissionCategory.CRM,
        "Edit Clients",
        "Modify existing client information.",
    ),
    _permission(
        Permission.CRM_CLIENTS_DELETE,
        PermissionCategory.CRM,
        "Delete Clients",
        "Remove clients from the system.",
    ),
    _permission(
        Permission.CRM_CLIENTS_ASSIGN,
        PermissionCategory.CRM,
        "Assign Clients",
        "Assign clients to team members.",
    ),
    _permission(
        Permission.CRM_CLIENTS_VIEW_ALL,
        PermissionCategory.CRM,
        "View All Clients",
        "View clients across all team members.",
    ),
    # User management ---------------------------------------------------
    _permission(
        Permission.USERS_VIEW,
        PermissionCategory.USER_MANAGEMENT,
        "View Users",
        "View user profiles and information.",
    ),
    _permission(
        Permission.USERS_CREATE,
        PermissionCategory.USER_MANAGEMENT,
        "Create Users",
        "Add new users to the system.",
    ),
    _permission(
        Permission.USERS_EDIT,
        PermissionCategory.USER_MANAGEMENT,
        "Edit Users",
        "Modify user information and settings.",
    ),
    _permission(
        Permission.USERS_DELETE,
        PermissionCategory.USER_MANAGEMENT,
        "Delete Users",
        "Deactivate users in the system.",
    ),
    _permission(
        Permission.USERS_PERMISSIONS,
        PermissionCategory.USER_MANAGEMENT,
        "Manage Permissions",
        "Modify user roles and permissions.",
    ),
    # Training ----------------------------------------------------------
    _permission(
        Permission.TRAINING_AGENT,
        PermissionCategory.TRAINING,
        "Agent Training",
        "Access sales agent training materials.",
    ),
    _permission(
        Permission.TRAINING_MANAGER,
        PermissionCategory.TRAINING,
        "Manager Training",
        "Access account manager training materials.",
    ),
    _permission(
        Permission.TRAINING_ADMIN,
        PermissionCategory.TRAINING,
        "Admin Training",
        "Access administrator training materials.",
    ),
    _permission(
        Permission.TRAINING_OWNER,
        PermissionCategory.TRAINING,
        "Owner Manual",
        "Access business owner strategic materials.",
    ),
    # Analytics ---------------------------------------------------------
    _permission(
        Permission.ANALYTICS_VIEW,
        PermissionCategory.ANALYTICS,
        "View Analytics",
        "View performance reports and analytics.",
    ),
    _permission(
        Permission.ANALYTICS_EXPORT,
        PermissionCategory.ANALYTICS,
        "Export Data",
        "Export reports and data.",
    ),
    # System ------------------------------------------------------------
    _permission(
        Permission.SYSTEM_CONFIG,
        PermissionCategory.SYSTEM,
        "System Configuration",
        "Modify system settings and configuration.",
    ),
    _permission(
        Permission.SYSTEM_BACKUP,
        PermissionCategory.SYSTEM,
        "System Backup",
        "Create and manage system backups.",
    ),
    _permission(
        Permission.SYSTEM_SECURITY,
        PermissionCategory.SYSTEM,
        "Security Management",
        "Manage security settings and audit logs.",
    ),
    _permission(
        Permission.SYSTEM_INTEGRATION,
        PermissionCategory.SYSTEM,
        "Integrations",
        "Manage third-party integrations and APIs.",
    ),
)

PERMISSION_REGISTRY: Mapping[Permission, PermissionDef] = MappingProxyType(
    {definition.key: definition for definition in PERMISSIONS}
)

_AGENT_PERMISSIONS = frozenset(
    {
        Permission.CRM_ACCESS,
        Permission.CRM_CLIENTS_VIEW,
        Permission.CRM_CLIENTS_CREATE,
        Permission.CRM_CLIENTS_EDIT,
        Permission.TRAINING_AGENT,
        Permission.ANALYTICS_VIEW,
    }
)

_MANAGER_PERMISSIONS = frozenset(
    {
        Permission.CRM_ACCESS,
        Permission.CRM_CLIENTS_VIEW,
        Permission.CRM_CLIENTS_CREATE,
        Permission.CRM_CLIENTS_EDIT,
        Permission.CRM_CLIENTS_ASSIGN,
        Permission.CRM_CLIENTS_VIEW_ALL,
        Permission.USERS_VIEW,
        Permission.USERS_EDIT,
        Permission.TRAINING_AGENT,
        Permission.TRAINING_MANAGER,
        Permission.ANALYTICS_VIEW,
        Permission.ANALYTICS_EXPORT,
    }
)

_ADMIN_PERMISSIONS = frozenset(
    {
        Permission.CRM_ACCESS,
        Permission.CRM_CLIENTS_VIEW,
        Permission.CRM_CLIENTS_CREATE,
        Permission.CRM_CLIENTS_EDIT,
        Permission.CRM_CLIENTS_DELETE,
        Permission.CRM_CLIENTS_ASSIGN,
        Permission.CRM_CLIENTS_VIEW_ALL,
        Permission.USERS_VIEW,
        Permission.USERS_CREATE,
        Permission.USERS_EDIT,
        Permission.USERS_DELETE,
        Permission.USERS_PERMISSIONS,
        Permission.TRAINING_AGENT,
        Permission.TRAINING_MANAGER,
        Permission.TRAINING_ADMIN,
        Permission.ANALYTICS_VIEW,
        Permission.ANALYTICS_EXPORT,
        Permission.SYSTEM_CONFIG,
        Permission.SYSTEM_BACKUP,
        Permission.SYSTEM_SECURITY,
    }
)

ROLES: tuple[RoleDef, ...] = (
    RoleDef(
        role=Role.AGENT,
        label="Sales Agent",
        description="Front-line CRM access for working assigned clients.",
        permissions=_AGENT_PERMISSIONS,
        accessible_roles=(Role.AGENT,),
    ),
    RoleDef(
        role=Role.MANAGER,
        label="Account Manager",
        description="Team lead who assigns clients and reviews team activity.",
        permissions=_MANAGER_PERMISSIONS,
        accessible_roles=(Role.AGENT, Role.MANAGER),
    ),
    RoleDef(
        role=Role.ADMIN,
        label="Administrator",
        description="Manages users, permissions and system settings.",
        permissions=_ADMIN_PERMISSIONS,
        accessible_roles=(Role.AGENT, Role.MANAGER, Role.ADMIN),
    ),
    RoleDef(
        role=Role.OWNER,
        label="Owner",
        description="Business owner with every permission in the catalogue.",
        permissions=frozenset(definition.key for definition in PERMISSIONS),
        accessible_roles=(Role.AGENT, Role.MANAGER, Role.ADMIN, Role.OWNER),
    ),
)

ROLE_REGISTRY: Mapping[Role, RoleDef] = MappingProxyType(
    {definition.role: definition for definition in ROLES}
)


class RegistryConfigurationError(RuntimeError):
    """Raised at import time when the static tables are inconsistent."""


def validate_registry() -> None:
    missing_permissions = set(Permission) - set(PERMISSION_REGISTRY)
    if missing_permissions:
        names = sorted(item.value for item in missing_permissions)
        raise RegistryConfigurationError(f"Permissions without a definition: {names}")
    if len(PERMISSION_REGISTRY) != len(PERMISSIONS):
        raise RegistryConfigurationError("Duplicate permission definitions")

    missing_roles = set(Role) - set(ROLE_REGISTRY)
    if missing_roles:
        names = sorted(item.value for item in missing_roles)
        raise RegistryConfigurationError(f"Roles without a definition: {names}")
    if set(ROLE_HIERARCHY) != set(Role):
        raise RegistryConfigurationError("Role hierarchy does not cover every role")
    if len(set(ROLE_HIERARCHY.values())) != len(ROLE_HIERARCHY):
        raise RegistryConfigurationError("Role hierarchy levels must be distinct")

    for definition in ROLES:
        unknown = definition.permissions - set(PERMISSION_REGISTRY)
        if unknown:
            raise RegistryConfigurationError(
                f"Role {definition.role.value!r} grants unknown permissions"
            )
        if definition.role not in definition.accessible_roles:
            raise RegistryConfigurationError(
                f"Role {definition.role.value!r} must be able to access itself"
            )


validate_registry()

__all__ = [
    "PERMISSION_REGISTRY",
    "PERMISSIONS",
    "ROLE_HIERARCHY",
    "ROLE_REGISTRY",
    "ROLES",
    "RegistryConfigurationError",
    "validate_registry",
]
