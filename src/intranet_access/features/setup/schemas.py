"""Schemas for first-owner setup and bulk account creation."""

from __future__ import annotations

from pydantic import Field

from intranet_access.common.schema import BaseSchema
from intranet_access.core.rbac.types import Role
from intranet_access.features.users.schemas import UserRecord


class OwnerSetupRequest(BaseSchema):
    """Interactive request to create the first owner account."""

    email: str
    password: str = Field(repr=False)
    display_name: str


class SetupResult(BaseSchema):
    success: bool
    message: str
    user_id: str | None = None


class BootstrapResult(BaseSchema):
    """Outcome of the first sign-in bootstrap for one identity."""

    success: bool
    was_promoted: bool
    message: str
    role: Role | None = None
    user: UserRecord | None = None


class SetupStatus(BaseSchema):
    needs_setup: bool
    total_users: int
    has_owner: bool
    users_by_role: dict[Role, int] = Field(default_factory=dict)


class SetupUserEntry(BaseSchema):
    """One account in a bulk seeding request."""

    email: str
    password: str = Field(repr=False)
    display_name: str
    role: Role = Role.AGENT
    department: str | None = None


class BulkCreateItem(BaseSchema):
    email: str
    success: bool
    error: str | None = None
    user_id: str | None = None


class BulkCreateResult(BaseSchema):
    success: bool
    message: str
    results: list[BulkCreateItem] = Field(default_factory=list)


__all__ = [
    "BootstrapResult",
    "BulkCreateItem",
    "BulkCreateResult",
    "OwnerSetupRequest",
    "SetupResult",
    "SetupStatus",
    "SetupUserEntry",
]
