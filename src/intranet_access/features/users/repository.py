"""SQLAlchemy-backed user directory."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from intranet_access.common.logging import log_context
from intranet_access.core.errors import (
    AccessCoreError,
    AlreadyInitializedError,
    DuplicateIdentityError,
    EmailInUseError,
    InvalidIdentityError,
    StoreUnavailableError,
)
from intranet_access.core.identity import canonical_email
from intranet_access.core.rbac.types import Role, UserStatus
from intranet_access.db import Database, utc_now
from intranet_access.models import User

from .directory import UserDirectory, clean_create_fields, update_values
from .schemas import UserCreate, UserRecord, UserUpdate

logger = logging.getLogger(__name__)


def _to_record(row: User) -> UserRecord:
    return UserRecord.model_validate(row)


class SqlUserDirectory(UserDirectory):
    """Directory over the ``users`` table, one transaction per operation.

    Writes additionally pass through an in-process ``asyncio.Lock``; the
    unique ``email_canonical`` and ``owner_slot`` constraints hold the
    invariants across processes.
    """

    def __init__(self, database: Database) -> None:
        self._db = database
        self._write_gate = asyncio.Lock()

    # ---- Reads ---------------------------------------------------------

    async def get(self, user_id: str) -> UserRecord | None:
        async with self._read() as session:
            row = await session.get(User, user_id)
            return _to_record(row) if row is not None else None

    async def get_by_email(self, email: str) -> UserRecord | None:
        async with self._read() as session:
            row = await self._row_by_email(session, email)
            return _to_record(row) if row is not None else None

    async def list_all(self) -> list[UserRecord]:
        async with self._read() as session:
            stmt = select(User).order_by(User.created_at, User.id)
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def list_by_role(self, role: Role, *, active_only: bool = False) -> list[UserRecord]:
        async with self._read() as session:
            stmt = select(User).where(User.role == role)
            if active_only:
                stmt = stmt.where(User.status == UserStatus.ACTIVE)
            stmt = stmt.order_by(User.created_at, User.id)
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def exists_by_email(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    async def count(self) -> int:
        async with self._read() as session:
            return await self._count(session)

    async def has_owner(self) -> bool:
        async with self._read() as session:
            return await self._owner_exists(session)

    # ---- Writes --------------------------------------------------------

    async def create(self, user_id: str, fields: UserCreate) -> UserRecord:
        user_id, fields = clean_create_fields(user_id, fields)
        async with self._write_gate:
            try:
                async with self._db.session() as session:
                    await self._check_insert(session, user_id, fields)
                    if fields.role is Role.OWNER and await self._owner_exists(session):
                        raise AlreadyInitializedError()
                    record = await self._insert(session, user_id, fields)
            except IntegrityError as exc:
                raise await self._classify_conflict(user_id, fields) from exc
            except SQLAlchemyError as exc:
                raise self._unavailable("create", exc) from exc
        return record

    async def create_owner_if_absent(
        self,
        user_id: str,
        fields: UserCreate,
        *,
        require_empty: bool,
    ) -> UserRecord:
        user_id, fields = clean_create_fields(user_id, fields)
        fields = fields.model_copy(update={"role": Role.OWNER, "status": UserStatus.ACTIVE})
        async with self._write_gate:
            try:
                async with self._db.session() as session:
                    if await session.get(User, user_id) is not None:
                        raise DuplicateIdentityError()
                    if await self._owner_exists(session):
                        raise AlreadyInitializedError()
                    if require_empty and await self._count(session) > 0:
                        raise AlreadyInitializedError()
                    await self._check_insert(session, user_id, fields)
                    record = await self._insert(session, user_id, fields)
            except IntegrityError as exc:
                raise await self._classify_conflict(user_id, fields) from exc
            except SQLAlchemyError as exc:
                raise self._unavailable("create_owner", exc) from exc
        logger.info("directory.owner.created", extra=log_context(user_id=user_id))
        return record

    async def promote_to_owner_if_absent(
        self,
        user_id: str,
        *,
        department: str | None = None,
    ) -> UserRecord:
        async with self._write_gate:
            try:
                async with self._db.session() as session:
                    if await self._owner_exists(session):
                        raise AlreadyInitializedError()
                    row = await self._require(session, user_id)
                    row.role = Role.OWNER
                    if department:
                        row.department = department
                    row.updated_at = utc_now()
                    await session.flush()
                    record = _to_record(row)
            except IntegrityError as exc:
                raise AlreadyInitializedError() from exc
            except SQLAlchemyError as exc:
                raise self._unavailable("promote_owner", exc) from exc
        logger.info("directory.owner.promoted", extra=log_context(user_id=user_id))
        return record

    async def update(self, user_id: str, changes: UserUpdate) -> UserRecord:
        values = update_values(changes)
        async with self._write_gate:
            try:
                async with self._db.session() as session:
                    row = await self._require(session, user_id)
                    if values.get("role") is Role.OWNER and row.role is not Role.OWNER:
                        if await self._owner_exists(session):
                            raise AlreadyInitializedError()
                    for key, value in values.items():
                        setattr(row, key, value)
                    row.updated_at = utc_now()
                    await session.flush()
                    record = _to_record(row)
            except IntegrityError as exc:
                raise AlreadyInitializedError() from exc
            except SQLAlchemyError as exc:
                raise self._unavailable("update", exc) from exc
        return record

    # ---- Internals -----------------------------------------------------

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._db.session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise self._unavailable("read", exc) from exc

    @staticmethod
    async def _row_by_email(session: AsyncSession, email: str) -> User | None:
        stmt = select(User).where(User.email_canonical == canonical_email(email))
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def _owner_exists(session: AsyncSession) -> bool:
        stmt = select(User.id).where(User.owner_slot.is_not(None)).limit(1)
        result = await session.execute(stmt)
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def _count(session: AsyncSession) -> int:
        result = await session.execute(select(func.count()).select_from(User))
        return int(result.scalar_one())

    @staticmethod
    async def _require(session: AsyncSession, user_id: str) -> User:
        row = await session.get(User, user_id)
        if row is None:
            raise InvalidIdentityError(f"No user record exists for {user_id!r}.")
        return row

    async def _check_insert(self, session: AsyncSession, user_id: str, fields: UserCreate) -> None:
        if await session.get(User, user_id) is not None:
            raise DuplicateIdentityError()
        if await self._row_by_email(session, fields.email) is not None:
            raise EmailInUseError()

    @staticmethod
    async def _insert(session: AsyncSession, user_id: str, fields: UserCreate) -> UserRecord:
        now = utc_now()
        row = User(
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
        session.add(row)
        await session.flush()
        return _to_record(row)

    async def _classify_conflict(self, user_id: str, fields: UserCreate) -> AccessCoreError:
        """Map a unique-constraint violation to the invariant it protects."""

        try:
            async with self._db.session() as session:
                if await session.get(User, user_id) is not None:
                    return DuplicateIdentityError()
                if await self._row_by_email(session, fields.email) is not None:
                    return EmailInUseError()
                if fields.role is Role.OWNER and await self._owner_exists(session):
                    return AlreadyInitializedError()
        except SQLAlchemyError as exc:
            return self._unavailable("classify_conflict", exc)
        return StoreUnavailableError("The user directory rejected the write. Please try again.")

    @staticmethod
    def _unavailable(operation: str, exc: Exception) -> StoreUnavailableError:
        logger.warning(
            "directory.unavailable",
            extra=log_context(action=operation, error=type(exc).__name__),
        )
        return StoreUnavailableError()


__all__ = ["SqlUserDirectory"]
