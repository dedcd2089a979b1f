"""Column types for the directory tables."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy.types import DateTime, TypeDecorator

__all__ = ["UTCDateTime", "enum_values"]


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """Persist roles and statuses by their string value, not their member name."""
    return [member.value for member in enum_cls]


def _as_utc(value: Any) -> Any:
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class UTCDateTime(TypeDecorator):
    """Aware UTC datetimes in and out.

    SQLite returns naive values; those are read back as UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        return _as_utc(value)

    def process_result_value(self, value: Any, dialect: Any) -> Any:
        return _as_utc(value)
