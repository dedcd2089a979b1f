"""Composition root: wire directory, audit, evaluator, setup and user services."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI

from intranet_access.common.logging import log_context, setup_logging
from intranet_access.core.http import register_access_exception_handlers
from intranet_access.db import Database, DatabaseConfig
from intranet_access.features.audit import AuditReporter, AuditSink, LoggingAuditSink
from intranet_access.features.authz import AuthorizationEvaluator
from intranet_access.features.session import SessionBinding
from intranet_access.features.setup import CredentialProvider, SetupService
from intranet_access.features.users import (
    InMemoryUserDirectory,
    SqlUserDirectory,
    UserDirectory,
)
from intranet_access.features.users.service import UsersService
from intranet_access.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AccessServices:
    """Process-level collaborators; sessions get their own ``SessionBinding``."""

    settings: Settings
    directory: UserDirectory
    audit: AuditReporter
    evaluator: AuthorizationEvaluator
    setup: SetupService
    users: UsersService
    database: Database | None = None

    def new_session(self, session_id: str | None = None) -> SessionBinding:
        return SessionBinding(
            self.directory,
            self.evaluator,
            self.setup,
            users=self.users,
            session_id=session_id,
        )

    def bind_state(self, app: FastAPI) -> None:
        app.state.access = self
        app.state.evaluator = self.evaluator

    def install(self, app: FastAPI) -> None:
        """Expose the services and register error handlers; call before serving."""
        self.bind_state(app)
        register_access_exception_handlers(app)

    async def close(self) -> None:
        await self.audit.drain()
        if self.database is not None:
            await self.database.dispose()


def build_services(
    settings: Settings | None = None,
    *,
    directory: UserDirectory | None = None,
    credentials: CredentialProvider | None = None,
    sink: AuditSink | None = None,
    database: Database | None = None,
) -> AccessServices:
    """Assemble the services; defaults to an in-memory directory."""

    settings = settings or get_settings()
    directory = directory or InMemoryUserDirectory()
    audit = AuditReporter.from_settings(sink or LoggingAuditSink(), settings)
    evaluator = AuthorizationEvaluator(directory, audit=audit)
    setup = SetupService(directory, settings, credentials=credentials, audit=audit)
    users = UsersService(directory, evaluator, settings, credentials=credentials, audit=audit)
    return AccessServices(
        settings=settings,
        directory=directory,
        audit=audit,
        evaluator=evaluator,
        setup=setup,
        users=users,
        database=database,
    )


async def open_sql_services(
    settings: Settings | None = None,
    *,
    credentials: CredentialProvider | None = None,
    sink: AuditSink | None = None,
) -> AccessServices:
    """Initialise the database (creating tables) and build SQL-backed services."""

    settings = settings or get_settings()
    database = Database()
    database.init(DatabaseConfig.from_settings(settings))
    await database.create_all()
    backend = "sqlite" if settings.is_sqlite else "other"
    logger.info("database.ready", extra=log_context(backend=backend))
    return build_services(
        settings,
        directory=SqlUserDirectory(database),
        credentials=credentials,
        sink=sink,
        database=database,
    )


def create_access_lifespan(
    settings: Settings | None = None,
    *,
    credentials: CredentialProvider | None = None,
):
    """Return a FastAPI lifespan that opens SQL-backed services for the app.

    Exception handlers must be registered when the app is constructed
    (``register_access_exception_handlers``); the lifespan only binds state.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        resolved = settings or get_settings()
        setup_logging(resolved)
        services = await open_sql_services(resolved, credentials=credentials)
        services.bind_state(app)
        try:
            yield
        finally:
            await services.close()

    return lifespan


__all__ = [
    "AccessServices",
    "build_services",
    "create_access_lifespan",
    "open_sql_services",
]
