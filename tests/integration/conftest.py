from __future__ import annotations

from collections.abc import AsyncIterator

import pytest_asyncio

from intranet_access.db import Database, DatabaseConfig
from intranet_access.features.users import SqlUserDirectory
from intranet_access.settings import Settings


@pytest_asyncio.fixture()
async def database(settings: Settings) -> AsyncIterator[Database]:
    """File-backed SQLite database with the schema applied."""

    db = Database()
    db.init(DatabaseConfig.from_settings(settings))
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture()
async def sql_directory(database: Database) -> SqlUserDirectory:
    return SqlUserDirectory(database)
