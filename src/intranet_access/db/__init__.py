"""Database helpers: declarative base, column types, engine holder."""

from .base import NAMING_CONVENTION, Base, TimestampMixin, metadata, utc_now
from .database import Database, DatabaseConfig
from .types import UTCDateTime, enum_values

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "Database",
    "DatabaseConfig",
    "TimestampMixin",
    "UTCDateTime",
    "enum_values",
    "metadata",
    "utc_now",
]
