"""User directory: record schemas, store interface and implementations."""

from .directory import UserDirectory
from .memory import InMemoryUserDirectory
from .repository import SqlUserDirectory
from .schemas import (
    UserCreate,
    UserInvite,
    UserProfileUpdate,
    UserRecord,
    UserStats,
    UserUpdate,
)

__all__ = [
    "InMemoryUserDirectory",
    "SqlUserDirectory",
    "UserCreate",
    "UserDirectory",
    "UserInvite",
    "UserProfileUpdate",
    "UserRecord",
    "UserStats",
    "UserUpdate",
]
