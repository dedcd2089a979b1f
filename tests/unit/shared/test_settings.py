from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from intranet_access.settings import Settings, get_settings, reload_settings


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("INTRANET_DATABASE_DSN", "INTRANET_OWNER_DEPARTMENT"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)

    assert settings.database_dsn.startswith("sqlite+aiosqlite:///")
    assert settings.database_dsn.endswith("intranet.sqlite")
    assert settings.is_sqlite
    assert settings.owner_department == "Executive"
    assert settings.member_department == "Sales"
    assert settings.bootstrap_require_empty_directory is True
    assert settings.password_min_length == 8
    assert settings.database_sqlite_begin_mode == "IMMEDIATE"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("INTRANET_DATABASE_DSN", f"sqlite:///{tmp_path / 'x.sqlite'}")
    monkeypatch.setenv("INTRANET_OWNER_DEPARTMENT", "  Board ")
    monkeypatch.setenv("INTRANET_PASSWORD_MIN_LENGTH", "12")
    monkeypatch.setenv("INTRANET_DATABASE_SQLITE_BEGIN_MODE", "exclusive")

    settings = Settings(_env_file=None)

    assert settings.database_dsn.startswith("sqlite+aiosqlite:///")
    assert settings.owner_department == "Board"
    assert settings.password_min_length == 12
    assert settings.database_sqlite_begin_mode == "EXCLUSIVE"


@pytest.mark.parametrize(
    "overrides",
    [
        {"database_sqlite_begin_mode": "sometimes"},
        {"member_department": "   "},
        {"password_min_length": 2},
    ],
)
def test_invalid_values_are_rejected(overrides: dict[str, object]) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_reload_settings_clears_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INTRANET_MEMBER_DEPARTMENT", "Support")
    try:
        first = reload_settings()
        assert get_settings() is first
        assert first.member_department == "Support"

        monkeypatch.setenv("INTRANET_MEMBER_DEPARTMENT", "Retention")
        assert reload_settings().member_department == "Retention"
    finally:
        monkeypatch.delenv("INTRANET_MEMBER_DEPARTMENT")
        reload_settings()
