"""User directory store interface.

The directory is the only component that touches persisted user records.
Owner-affecting writes go through the conditional primitives
(``create_owner_if_absent`` / ``promote_to_owner_if_absent``); an ordinary
write that would produce a second owner raises ``AlreadyInitializedError``.
Infrastructure failures surface as ``StoreUnavailableError``.
"""

from __future__ import annotations

from intranet_access.core.identity import validate_email, validate_identity_id
from intranet_access.core.rbac.types import Role

from .schemas import UserCreate, UserRecord, UserUpdate

# Non-nullable columns: an explicit ``None`` in a partial update is ignored.
REQUIRED_FIELDS = frozenset({"display_name", "role", "status"})


def clean_create_fields(user_id: str, fields: UserCreate) -> tuple[str, UserCreate]:
    """Validate the id and email of a create request."""

    cleaned_id = validate_identity_id(user_id)
    email = validate_email(fields.email)
    display_name = fields.display_name or email.split("@", 1)[0]
    return cleaned_id, fields.model_copy(update={"email": email, "display_name": display_name})


def update_values(changes: UserUpdate) -> dict[str, object]:
    return {
        key: value
        for key, value in changes.changes().items()
        if not (key in REQUIRED_FIELDS and value is None)
    }


class UserDirectory:
    """Interface describing the narrow user-record store."""

    async def get(self, user_id: str) -> UserRecord | None:  # pragma: no cover - interface only
        raise NotImplementedError

    async def get_by_email(  # pragma: no cover - interface only
        self,
        email: str,
    ) -> UserRecord | None:
        raise NotImplementedError

    async def create(  # pragma: no cover - interface only
        self,
        user_id: str,
        fields: UserCreate,
    ) -> UserRecord:
        """Insert a record; fails when the id has a record or the email is taken."""
        raise NotImplementedError

    async def update(  # pragma: no cover - interface only
        self,
        user_id: str,
        changes: UserUpdate,
    ) -> UserRecord:
        raise NotImplementedError

    async def list_all(self) -> list[UserRecord]:  # pragma: no cover - interface only
        raise NotImplementedError

    async def list_by_role(  # pragma: no cover - interface only
        self,
        role: Role,
        *,
        active_only: bool = False,
    ) -> list[UserRecord]:
        raise NotImplementedError

    async def exists_by_email(self, email: str) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError

    async def count(self) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    async def has_owner(self) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError

    async def create_owner_if_absent(  # pragma: no cover - interface only
        self,
        user_id: str,
        fields: UserCreate,
        *,
        require_empty: bool,
    ) -> UserRecord:
        """Atomically create ``user_id`` as the owner.

        Raises ``AlreadyInitializedError`` when an owner exists, or when
        ``require_empty`` is set and the directory holds any record.
        """
        raise NotImplementedError

    async def promote_to_owner_if_absent(  # pragma: no cover - interface only
        self,
        user_id: str,
        *,
        department: str | None = None,
    ) -> UserRecord:
        """Atomically promote an existing record to owner while none exists."""
        raise NotImplementedError


__all__ = ["REQUIRED_FIELDS", "UserDirectory", "clean_create_fields", "update_values"]
