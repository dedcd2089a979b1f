"""User directory row: one record per external identity."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Enum as SAEnum
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from intranet_access.core.rbac.types import Role, UserStatus
from intranet_access.db import Base, TimestampMixin, UTCDateTime, enum_values

OWNER_SLOT = 1


def _normalise_email(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        msg = "Email must not be empty"
        raise ValueError(msg)
    return cleaned


def _clean_optional(value: str | None, *, limit: int) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned:
        return None
    return cleaned[:limit]


class User(TimestampMixin, Base):
    """Directory record keyed by the identity provider's opaque id.

    ``owner_slot`` is ``1`` on the owner row and ``NULL`` elsewhere; its
    unique constraint makes a second owner row impossible at the database level.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    email_canonical: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[Role] = mapped_column(
        SAEnum(
            Role,
            name="user_role",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=Role.AGENT,
    )
    status: Mapped[UserStatus] = mapped_column(
        SAEnum(
            UserStatus,
            name="user_status",
            native_enum=False,
            length=20,
            values_callable=enum_values,
        ),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    department: Mapped[str | None] = mapped_column(String(120), nullable=True)
    phone_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    owner_slot: Mapped[int | None] = mapped_column(Integer, nullable=True, unique=True)

    @validates("email")
    def _store_normalised_email(self, _key: str, value: str) -> str:
        cleaned = _normalise_email(value)
        self.email_canonical = cleaned.lower()
        return cleaned

    @validates("role")
    def _track_owner_slot(self, _key: str, value: Role) -> Role:
        role = Role(value)
        self.owner_slot = OWNER_SLOT if role is Role.OWNER else None
        return role

    @validates("department")
    def _trim_department(self, _key: str, value: str | None) -> str | None:
        return _clean_optional(value, limit=120)

    @validates("phone_number")
    def _trim_phone_number(self, _key: str, value: str | None) -> str | None:
        return _clean_optional(value, limit=40)

    @validates("avatar_url")
    def _trim_avatar(self, _key: str, value: str | None) -> str | None:
        return _clean_optional(value, limit=1024)


__all__ = ["OWNER_SLOT", "User"]
