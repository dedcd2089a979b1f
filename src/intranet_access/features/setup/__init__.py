"""System bootstrap: first owner, initial setup and seeding."""

from .credentials import (
    CredentialProvider,
    InMemoryCredentialProvider,
    check_password_strength,
)
from .schemas import (
    BootstrapResult,
    BulkCreateItem,
    BulkCreateResult,
    OwnerSetupRequest,
    SetupResult,
    SetupStatus,
    SetupUserEntry,
)
from .service import SetupService

__all__ = [
    "BootstrapResult",
    "BulkCreateItem",
    "BulkCreateResult",
    "CredentialProvider",
    "InMemoryCredentialProvider",
    "OwnerSetupRequest",
    "SetupResult",
    "SetupService",
    "SetupStatus",
    "SetupUserEntry",
    "check_password_strength",
]
