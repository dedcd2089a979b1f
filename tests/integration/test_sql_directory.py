"""SQL-backed user directory against a real SQLite file."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import select

from intranet_access.core.errors import (
    AlreadyInitializedError,
    DuplicateIdentityError,
    EmailInUseError,
    InvalidIdentityError,
    StoreUnavailableError,
)
from intranet_access.core.rbac.types import Role, UserStatus
from intranet_access.db import Database, DatabaseConfig
from intranet_access.features.users import SqlUserDirectory, UserCreate, UserUpdate
from intranet_access.models import OWNER_SLOT, User

pytestmark = pytest.mark.asyncio


def _fields(email: str, role: Role = Role.AGENT, **extra) -> UserCreate:
    return UserCreate(email=email, display_name=email.split("@")[0], role=role, **extra)


async def test_create_persists_canonical_email(
    sql_directory: SqlUserDirectory,
    database: Database,
) -> None:
    record = await sql_directory.create("u-1", _fields("Mixed.Case@Example.test"))

    async with database.session() as session:
        row = await session.get(User, "u-1")

    assert record.email == "Mixed.Case@Example.test"
    assert row.email_canonical == "mixed.case@example.test"
    assert row.owner_slot is None
    assert record.created_at.tzinfo is not None
    assert await sql_directory.get_by_email("mixed.case@example.TEST") == record


async def test_create_conflicts(sql_directory: SqlUserDirectory) -> None:
    await sql_directory.create("u-1", _fields("a@example.test"))

    with pytest.raises(DuplicateIdentityError):
        await sql_directory.create("u-1", _fields("b@example.test"))
    with pytest.raises(EmailInUseError):
        await sql_directory.create("u-2", _fields("A@EXAMPLE.test"))
    assert await sql_directory.count() == 1


async def test_owner_slot_tracks_role(sql_directory: SqlUserDirectory, database: Database) -> None:
    await sql_directory.create_owner_if_absent(
        "o-1", _fields("o@example.test"), require_empty=True
    )

    async with database.session() as session:
        result = await session.execute(select(User.owner_slot).where(User.id == "o-1"))
        slot = result.scalar_one()

    assert slot == OWNER_SLOT
    assert await sql_directory.has_owner()
    with pytest.raises(AlreadyInitializedError):
        await sql_directory.create("o-2", _fields("o2@example.test", role=Role.OWNER))
    with pytest.raises(AlreadyInitializedError):
        await sql_directory.create_owner_if_absent(
            "o-3", _fields("o3@example.test"), require_empty=False
        )


async def test_require_empty_blocks_owner_creation(sql_directory: SqlUserDirectory) -> None:
    await sql_directory.create("u-1", _fields("first@example.test"))

    with pytest.raises(AlreadyInitializedError):
        await sql_directory.create_owner_if_absent(
            "u-2", _fields("second@example.test"), require_empty=True
        )
    with pytest.raises(DuplicateIdentityError):
        await sql_directory.create_owner_if_absent(
            "u-1", _fields("first@example.test"), require_empty=False
        )


async def test_update_and_owner_promotion(sql_directory: SqlUserDirectory) -> None:
    await sql_directory.create("u-1", _fields("p@example.test", role=Role.ADMIN))
    await sql_directory.create("u-2", _fields("q@example.test"))

    updated = await sql_directory.update(
        "u-2", UserUpdate(role=Role.MANAGER, status=UserStatus.INACTIVE, display_name=None)
    )
    promoted = await sql_directory.promote_to_owner_if_absent("u-1", department="Executive")

    assert updated.role is Role.MANAGER
    assert not updated.is_active
    assert updated.display_name == "q"
    assert promoted.is_owner
    assert promoted.department == "Executive"
    with pytest.raises(AlreadyInitializedError):
        await sql_directory.promote_to_owner_if_absent("u-2")
    with pytest.raises(AlreadyInitializedError):
        await sql_directory.update("u-2", UserUpdate(role=Role.OWNER))
    with pytest.raises(InvalidIdentityError):
        await sql_directory.update("missing", UserUpdate(role=Role.AGENT))


async def test_list_queries(sql_directory: SqlUserDirectory) -> None:
    await sql_directory.create("u-1", _fields("r@example.test"))
    await sql_directory.create("u-2", _fields("s@example.test", status=UserStatus.INACTIVE))
    await sql_directory.create("u-3", _fields("t@example.test", role=Role.ADMIN))

    assert {record.id for record in await sql_directory.list_all()} == {"u-1", "u-2", "u-3"}
    assert {record.id for record in await sql_directory.list_by_role(Role.AGENT)} == {
        "u-1",
        "u-2",
    }
    active_agents = await sql_directory.list_by_role(Role.AGENT, active_only=True)
    assert [record.id for record in active_agents] == ["u-1"]
    assert await sql_directory.exists_by_email("T@example.test")


async def test_concurrent_owner_creation_yields_one_owner(
    sql_directory: SqlUserDirectory,
) -> None:
    outcomes = await asyncio.gather(
        *(
            sql_directory.create_owner_if_absent(
                f"u-{index}", _fields(f"user{index}@example.test"), require_empty=False
            )
            for index in range(6)
        ),
        return_exceptions=True,
    )

    winners = [item for item in outcomes if not isinstance(item, Exception)]
    assert len(winners) == 1
    assert all(
        isinstance(item, AlreadyInitializedError)
        for item in outcomes
        if isinstance(item, Exception)
    )
    assert len(await sql_directory.list_by_role(Role.OWNER)) == 1


async def test_two_processes_share_single_owner(settings, database: Database) -> None:
    other = Database()
    other.init(DatabaseConfig.from_settings(settings))
    try:
        first = SqlUserDirectory(database)
        second = SqlUserDirectory(other)

        outcomes = await asyncio.gather(
            first.create_owner_if_absent("a", _fields("a@example.test"), require_empty=False),
            second.create_owner_if_absent("b", _fields("b@example.test"), require_empty=False),
            return_exceptions=True,
        )

        assert sum(1 for item in outcomes if not isinstance(item, Exception)) == 1
        assert all(
            isinstance(item, AlreadyInitializedError)
            for item in outcomes
            if isinstance(item, Exception)
        )
        assert len(await second.list_by_role(Role.OWNER)) == 1
    finally:
        await other.dispose()


async def test_missing_schema_is_store_unavailable(tmp_path) -> None:
    broken = Database()
    empty = (tmp_path / "empty.sqlite").as_posix()
    broken.init(DatabaseConfig(url=f"sqlite+aiosqlite:///{empty}"))
    directory = SqlUserDirectory(broken)

    with pytest.raises(StoreUnavailableError):
        await directory.get("anyone")
    await broken.dispose()


async def test_phone_number_fits_column(sql_directory: SqlUserDirectory) -> None:
    record = await sql_directory.create(
        "u-1", _fields("phone@example.test", phone_number=" " + "5" * 40 + " ")
    )

    assert record.phone_number == "5" * 40
    assert len(User(phone_number="7" * 60).phone_number) == 40
