"""In-process user directory for tests and embedding."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from intranet_access.common.logging import log_context
from intranet_access.core.errors import (
    AlreadyInitializedError,
    DuplicateIdentityError,
    EmailInUseError,
    InvalidIdentityError,
)
from intranet_access.core.identity import canonical_email
from intranet_access.core.rbac.types import Role, UserStatus
from intranet_access.db.base import utc_now

from .directory import UserDirectory, clean_create_fields, update_values
from .schemas import UserCreate, UserRecord, UserUpdate

logger = logging.getLogger(__name__)


class InMemoryUserDirectory(UserDirectory):
    """Dict-backed directory; every write runs under a single ``asyncio.Lock``."""

    def __init__(self, *, clock: Callable[[], datetime] = utc_now) -> None:
        self._records: dict[str, UserRecord] = {}
        self._write_gate = asyncio.Lock()
        self._clock = clock

    # ---- Reads ---------------------------------------------------------

    async def get(self, user_id: str) -> UserRecord | None:
        return self._records.get(user_id)

    async def get_by_email(self, email: str) -> UserRecord | None:
        wanted = canonical_email(email)
        for record in self._records.values():
            if canonical_email(record.email) == wanted:
                return record
        return None

    async def list_all(self) -> list[UserRecord]:
        return sorted(self._records.values(), key=lambda item: (item.created_at, item.id))

    async def list_by_role(self, role: Role, *, active_only: bool = False) -> list[UserRecord]:
        return [
            record
            for record in await self.list_all()
            if record.role is role and (not active_only or record.is_active)
        ]

    async def exists_by_email(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    async def count(self) -> int:
        return len(self._records)

    async def has_owner(self) -> bool:
        return self._owner() is not None

    # ---- Writes --------------------------------------------------------

    async def create(self, user_id: str, fields: UserCreate) -> UserRecord:
        user_id, fields = clean_create_fields(user_id, fields)
        async with self._write_gate:
            self._check_insert(user_id, fields)
            if fields.role is Role.OWNER and self._owner() is not None:
                raise AlreadyInitializedError()
            return self._insert(user_id, fields)

    async def create_owner_if_absent(
        self,
        user_id: str,
        fields: UserCreate,
        *,
        require_empty: bool,
    ) -> UserRecord:
        user_id, fields = clean_create_fields(user_id, fields)
        async with self._write_gate:
            if user_id in self._records:
                raise DuplicateIdentityError()
            if self._owner() is not None or (require_empty and self._records):
                raise AlreadyInitializedError()
            self._check_insert(user_id, fields)
            record = self._insert(
                user_id,
                fields.model_copy(update={"role": Role.OWNER, "status": UserStatus.ACTIVE}),
            )
        logger.info("directory.owner.created", extra=log_context(user_id=user_id))
        return record

    async def promote_to_owner_if_absent(
        self,
        user_id: str,
        *,
        department: str | None = None,
    ) -> UserRecord:
        async with self._write_gate:
            if self._owner() is not None:
                raise AlreadyInitializedError()
            current = self._require(user_id)
            updates: dict[str, object] = {"role": Role.OWNER, "updated_at": self._clock()}
            if department:
                updates["department"] = department
            record = current.model_copy(update=updates)
            self._records[user_id] = record
        logger.info("directory.owner.promoted", extra=log_context(user_id=user_id))
        return record

    async def update(self, user_id: str, changes: UserUpdate) -> UserRecord:
        values = update_values(changes)
        async with self._write_gate:
            current = self._require(user_id)
            if values.get("role") is Role.OWNER and not current.is_owner:
                if self._owner() is not None:
                    raise AlreadyInitializedError()
            values["updated_at"] = self._clock()
            record = current.model_copy(update=values)
            self._records[user_id] = record
        return record

    # ---- Internals -----------------------------------------------------

    def _owner(self) -> UserRecord | None:
        for record in self._records.values():
            if record.role is Role.OWNER:
                return record
        return None

    def _require(self, user_id: str) -> UserRecord:
        record = self._records.get(user_id)
        if record is None:
            raise InvalidIdentityError(f"No user record exists for {user_id!r}.")
        return record

    def _check_insert(self, user_id: str, fields: UserCreate) -> None:
        if user_id in self._records:
            raise DuplicateIdentityError()
        wanted = canonical_email(fields.email)
        if any(canonical_email(item.email) == wanted for item in self._records.values()):
            raise EmailInUseError()

    def _insert(self, user_id: str, fields: UserCreate) -> UserRecord:
        now = self._clock()
        record = UserRecord(
            id=user_id,
            email=fields.email,
            display_name=fields.display_name,
            role=fields.role,
            status=fields.status,
            department=fields.department,
            phone_number=fields.phone_number,
            avatar_url=fields.avatar_url,
            created_at=now,
            updated_at=now,
        )
        self._records[user_id] = record
        return record


__all__ = ["InMemoryUserDirectory"]
