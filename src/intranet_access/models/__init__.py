"""Central exports for SQLAlchemy models."""

from .user import OWNER_SLOT, User

__all__ = ["OWNER_SLOT", "User"]
