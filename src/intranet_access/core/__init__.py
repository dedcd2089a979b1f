"""Auth contracts and pure policy shared across the access core."""

from .errors import (
    AccessCoreError,
    AlreadyInitializedError,
    DuplicateIdentityError,
    EmailInUseError,
    InvalidIdentityError,
    OwnerProtectedError,
    PermissionDeniedError,
    StoreUnavailableError,
    WeakCredentialError,
)
from .identity import IdentityDescriptor

__all__ = [
    "AccessCoreError",
    "AlreadyInitializedError",
    "DuplicateIdentityError",
    "EmailInUseError",
    "IdentityDescriptor",
    "InvalidIdentityError",
    "OwnerProtectedError",
    "PermissionDeniedError",
    "StoreUnavailableError",
    "WeakCredentialError",
]
