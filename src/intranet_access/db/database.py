"""Async engine and unit-of-work sessions for the SQL user directory.

A process holds one :class:`Database`. It is initialised at startup from
:class:`DatabaseConfig`, hands out one committed-or-rolled-back session per
directory operation, and is disposed on shutdown.

On SQLite every transaction opens with ``BEGIN IMMEDIATE`` by default. The
write lock is therefore held before the directory checks for an existing
owner, and two processes sharing the file serialise their owner writes.
An in-memory database lives on a single shared connection, so its units of
work run one at a time.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager, nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from intranet_access.settings import Settings, SQLiteBeginMode

from .base import metadata

__all__ = ["Database", "DatabaseConfig"]


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection options for the directory store."""

    url: str
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    sqlite_journal_mode: str = "WAL"
    sqlite_synchronous: str = "NORMAL"
    sqlite_busy_timeout_ms: int = 30_000
    sqlite_begin_mode: SQLiteBeginMode | None = "IMMEDIATE"

    @classmethod
    def from_settings(cls, settings: Settings) -> DatabaseConfig:
        return cls(
            url=str(settings.database_dsn),
            echo=settings.database_echo,
            sqlite_journal_mode=settings.database_sqlite_journal_mode,
            sqlite_busy_timeout_ms=settings.database_sqlite_busy_timeout_ms,
            sqlite_begin_mode=settings.database_sqlite_begin_mode,
        )

    @property
    def parsed_url(self) -> URL:
        return make_url(self.url)

    @property
    def is_sqlite(self) -> bool:
        return self.parsed_url.get_backend_name() == "sqlite"


def _sqlite_file(url: URL) -> Path | None:
    """Return the on-disk path of a SQLite URL, or ``None`` for in-memory stores."""
    name = (url.database or "").strip()
    if name in ("", ":memory:"):
        return None
    if name.startswith("file:"):
        return None if url.query.get("mode") == "memory" else Path(name[5:].split("?")[0])
    return Path(name)


def _engine_options(cfg: DatabaseConfig) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": cfg.echo, "pool_pre_ping": True}
    if not cfg.is_sqlite:
        options.update(
            pool_size=cfg.pool_size, max_overflow=cfg.max_overflow, pool_timeout=cfg.pool_timeout
        )
        return options

    options["connect_args"] = {
        "check_same_thread": False,
        "timeout": cfg.sqlite_busy_timeout_ms / 1000,
    }
    if _sqlite_file(cfg.parsed_url) is None:
        # A private in-memory database only exists on its one connection.
        options["poolclass"] = StaticPool
    else:
        # One connection per process; concurrent writers queue on the pool.
        options.update(pool_size=1, max_overflow=0, pool_timeout=max(1, cfg.pool_timeout))
    return options


def _configure_sqlite(engine: AsyncEngine, cfg: DatabaseConfig) -> None:
    pragmas = (
        "PRAGMA foreign_keys=ON",
        f"PRAGMA busy_timeout={cfg.sqlite_busy_timeout_ms}",
        f"PRAGMA journal_mode={cfg.sqlite_journal_mode}",
        f"PRAGMA synchronous={cfg.sqlite_synchronous}",
    )
    begin_statement = f"BEGIN {cfg.sqlite_begin_mode}" if cfg.sqlite_begin_mode else None

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_conn, _record) -> None:
        if begin_statement:
            # pysqlite would otherwise issue its own deferred BEGIN.
            dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        try:
            for pragma in pragmas:
                cursor.execute(pragma)
        finally:
            cursor.close()

    if begin_statement:

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn) -> None:
            conn.exec_driver_sql(begin_statement)


class Database:
    """Engine and session factory behind :class:`SqlUserDirectory`."""

    def __init__(self) -> None:
        self._cfg: DatabaseConfig | None = None
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None
        # Set when every session shares one in-memory connection.
        self._single_connection: asyncio.Lock | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database.init() must run before the directory is used.")
        return self._engine

    def init(self, cfg: DatabaseConfig) -> None:
        """Build the engine for ``cfg``; a repeat call with the same config is a no-op."""
        if self._engine is not None and self._cfg == cfg:
            return

        if cfg.is_sqlite:
            path = _sqlite_file(cfg.parsed_url)
            if path is not None:
                path.expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)

        engine = create_async_engine(cfg.url, **_engine_options(cfg))
        if cfg.is_sqlite:
            _configure_sqlite(engine, cfg)

        self._cfg = cfg
        self._engine = engine
        self._sessions = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
        in_memory = cfg.is_sqlite and _sqlite_file(cfg.parsed_url) is None
        self._single_connection = asyncio.Lock() if in_memory else None

    async def create_all(self) -> None:
        """Create the directory tables that are missing."""
        from intranet_access import models  # noqa: F401  registers the user table

        async with self._exclusive(), self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """One unit of work: commit when the block exits cleanly, roll back otherwise."""
        if self._sessions is None:
            raise RuntimeError("Database.init() must run before the directory is used.")
        async with self._exclusive():
            session = self._sessions()
            try:
                yield session
                await session.commit()
            except BaseException:
                await session.rollback()
                raise
            finally:
                await asyncio.shield(session.close())

    def _exclusive(self) -> AbstractAsyncContextManager[Any]:
        """Serialise units of work that would share a single connection."""
        if self._single_connection is None:
            return nullcontext()
        return self._single_connection

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._cfg = None
        self._engine = None
        self._sessions = None
        self._single_connection = None
