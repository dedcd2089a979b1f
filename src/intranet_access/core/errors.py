"""Error taxonomy shared by the directory, setup and user services.

Authorization denials are *not* errors: the evaluator returns a
``Denied`` decision. Everything here is raised by mutating operations and
carries a stable ``code`` plus a message suitable for display.
"""

from __future__ import annotations


class AccessCoreError(Exception):
    """Base class for recoverable access-core failures."""

    code: str = "access_error"
    default_message: str = "The request could not be completed."
    retryable: bool = False

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class AlreadyInitializedError(AccessCoreError):
    """Raised when an owner already exists."""

    code = "already_initialized"
    default_message = "An owner already exists in the system. Only one owner can be created."


class EmailInUseError(AccessCoreError):
    """Raised when another user record already uses the email address."""

    code = "email_in_use"
    default_message = "A user with this email already exists."


class WeakCredentialError(AccessCoreError):
    code = "weak_credential"
    default_message = "Password does not meet the minimum strength requirements."


class InvalidIdentityError(AccessCoreError):
    """Raised for malformed identity descriptors or ids without a record."""

    code = "invalid_identity"
    default_message = "The identity is invalid or unknown."


class DuplicateIdentityError(AccessCoreError):
    code = "identity_exists"
    default_message = "A user record already exists for this identity."


class OwnerProtectedError(AccessCoreError):
    """Raised when a change would demote or deactivate the system owner."""

    code = "owner_protected"
    default_message = "The system owner cannot be demoted or deactivated."


class StoreUnavailableError(AccessCoreError):
    """Raised when the user directory cannot be reached; safe to retry."""

    code = "store_unavailable"
    default_message = "The user directory is temporarily unavailable. Please try again."
    retryable = True


class PermissionDeniedError(AccessCoreError):
    """Raised by mutating services when the acting identity lacks access."""

    code = "permission_denied"
    default_message = "You do not have permission to perform this action."

    def __init__(
        self,
        message: str | None = None,
        *,
        reason: str | None = None,
        actor_id: str | None = None,
        required: dict[str, object] | None = None,
    ) -> None:
        self.reason = reason
        self.actor_id = actor_id
        self.required = required or {}
        super().__init__(message)


__all__ = [
    "AccessCoreError",
    "AlreadyInitializedError",
    "DuplicateIdentityError",
    "EmailInUseError",
    "InvalidIdentityError",
    "OwnerProtectedError",
    "PermissionDeniedError",
    "StoreUnavailableError",
    "WeakCredentialError",
]
