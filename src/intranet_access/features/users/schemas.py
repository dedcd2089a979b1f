"""Pydantic schemas for user directory records and payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from intranet_access.common.schema import BaseSchema, FrozenSchema
from intranet_access.core.rbac.types import Role, UserStatus


def _strip_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


class UserRecord(FrozenSchema):
    """Immutable snapshot of one directory record."""

    id: str
    email: str
    display_name: str
    role: Role
    status: UserStatus
    created_at: datetime
    updated_at: datetime
    last_login_at: datetime | None = None
    department: str | None = None
    phone_number: str | None = None
    avatar_url: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status is UserStatus.ACTIVE

    @property
    def is_owner(self) -> bool:
        return self.role is Role.OWNER


class UserCreate(BaseSchema):
    """Fields for a new directory record; the id is supplied separately."""

    email: str
    display_name: str
    role: Role = Role.AGENT
    status: UserStatus = UserStatus.ACTIVE
    department: str | None = None
    phone_number: str | None = Field(default=None, max_length=40)
    avatar_url: str | None = None

    @field_validator("email", "display_name", mode="before")
    @classmethod
    def _strip_required(cls, value: object) -> str:
        return str(value or "").strip()

    @field_validator("department", "phone_number", "avatar_url", mode="before")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class UserUpdate(BaseSchema):
    """Partial update; only explicitly set fields are applied."""

    display_name: str | None = None
    role: Role | None = None
    status: UserStatus | None = None
    department: str | None = None
    phone_number: str | None = Field(default=None, max_length=40)
    avatar_url: str | None = None
    last_login_at: datetime | None = None

    def changes(self) -> dict[str, object]:
        return self.model_dump(exclude_unset=True, exclude_none=False, by_alias=False)


class UserProfileUpdate(BaseSchema):
    """Self-service profile fields that never affect authorization."""

    display_name: str | None = Field(default=None, min_length=1, max_length=255)
    department: str | None = Field(default=None, max_length=120)
    phone_number: str | None = Field(default=None, max_length=40)
    avatar_url: str | None = Field(default=None, max_length=1024)

    @field_validator("display_name", "department", "phone_number", "avatar_url", mode="before")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class UserInvite(BaseSchema):
    """Account creation request issued by an administrator."""

    email: str
    password: str = Field(repr=False)
    display_name: str
    role: Role = Role.AGENT
    department: str | None = None
    phone_number: str | None = Field(default=None, max_length=40)

    @field_validator("department", "phone_number", mode="before")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        return _strip_optional(value)


class UserStats(BaseSchema):
    total: int
    active: int
    inactive: int
    by_role: dict[Role, int] = Field(default_factory=dict)


__all__ = [
    "UserCreate",
    "UserInvite",
    "UserProfileUpdate",
    "UserRecord",
    "UserStats",
    "UserUpdate",
]
