"""Audit event payloads."""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from pydantic import Field

from intranet_access.common.schema import FrozenSchema
from intranet_access.core.rbac.types import Role
from intranet_access.db.base import utc_now


class AuditEventType(str, enum.Enum):
    LOGIN_SUCCESS = "login_success"
    ROLE_CHANGED = "role_changed"
    USER_CREATED = "user_created"
    USER_ACTIVATED = "user_activated"
    USER_DEACTIVATED = "user_deactivated"
    OWNER_BOOTSTRAPPED = "owner_bootstrapped"
    UNAUTHORIZED_ACCESS_ATTEMPT = "unauthorized_access_attempt"
    BULK_OPERATION = "bulk_operation"


class AuditSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AuditEvent(FrozenSchema):
    """One security-relevant occurrence."""

    event_type: AuditEventType
    severity: AuditSeverity
    action: str
    success: bool
    timestamp: datetime = Field(default_factory=utc_now)
    user_id: str | None = None
    user_email: str | None = None
    user_role: Role | None = None
    resource: str | None = None
    resource_id: str | None = None
    session_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


__all__ = ["AuditEvent", "AuditEventType", "AuditSeverity"]
