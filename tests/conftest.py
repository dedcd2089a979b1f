from __future__ import annotations

from pathlib import Path

import pytest
import pytest_asyncio

from intranet_access.core.identity import IdentityDescriptor
from intranet_access.features.audit import AuditReporter, MemoryAuditSink
from intranet_access.features.authz import AuthorizationEvaluator
from intranet_access.features.setup import InMemoryCredentialProvider, SetupService
from intranet_access.features.users import InMemoryUserDirectory
from intranet_access.features.users.service import UsersService
from intranet_access.settings import Settings


def pytest_collection_modifyitems(config, items) -> None:
    for item in items:
        path_str = str(Path(str(item.fspath)))
        if "/tests/integration/" in path_str:
            item.add_marker(pytest.mark.integration)
        elif "/tests/unit/" in path_str:
            item.add_marker(pytest.mark.unit)


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the caller's environment and working directory."""

    return Settings(
        _env_file=None,
        database_dsn=f"sqlite+aiosqlite:///{(tmp_path / 'intranet.sqlite').as_posix()}",
        logging_level="DEBUG",
    )


@pytest.fixture()
def directory() -> InMemoryUserDirectory:
    return InMemoryUserDirectory()


@pytest.fixture()
def audit_sink() -> MemoryAuditSink:
    return MemoryAuditSink()


@pytest.fixture()
def audit(audit_sink: MemoryAuditSink, settings: Settings) -> AuditReporter:
    return AuditReporter.from_settings(audit_sink, settings)


@pytest.fixture()
def credentials() -> InMemoryCredentialProvider:
    # Low scrypt cost keeps hashing fast in tests.
    return InMemoryCredentialProvider(n_factor=2**4)


@pytest.fixture()
def evaluator(directory: InMemoryUserDirectory, audit: AuditReporter) -> AuthorizationEvaluator:
    return AuthorizationEvaluator(directory, audit=audit)


@pytest.fixture()
def setup_service(
    directory: InMemoryUserDirectory,
    settings: Settings,
    credentials: InMemoryCredentialProvider,
    audit: AuditReporter,
) -> SetupService:
    return SetupService(directory, settings, credentials=credentials, audit=audit)


@pytest.fixture()
def users_service(
    directory: InMemoryUserDirectory,
    evaluator: AuthorizationEvaluator,
    settings: Settings,
    credentials: InMemoryCredentialProvider,
    audit: AuditReporter,
) -> UsersService:
    return UsersService(
        directory,
        evaluator,
        settings,
        credentials=credentials,
        audit=audit,
    )


@pytest_asyncio.fixture()
async def owner(setup_service: SetupService):
    """The first signed-in identity, promoted to owner."""

    result = await setup_service.auto_promote_first_user(
        IdentityDescriptor(id="owner-1", email="owner@example.test", display_name="Olivia Owner")
    )
    assert result.was_promoted
    return result.user
