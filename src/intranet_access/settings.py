"""Runtime configuration for the access core.

Values come from ``INTRANET_*`` environment variables (or a ``.env`` file).
Without ``INTRANET_DATABASE_DSN`` the directory lives in a local SQLite file
under ``./data/db``.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, get_args

from pydantic import Field, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

SQLiteBeginMode = Literal["DEFERRED", "IMMEDIATE", "EXCLUSIVE"]

DEFAULT_SQLITE_PATH = Path("./data/db/intranet.sqlite")
DEFAULT_OWNER_DEPARTMENT = "Executive"
DEFAULT_MEMBER_DEPARTMENT = "Sales"

_ASYNC_SQLITE_DRIVER = "sqlite+aiosqlite"


def _default_dsn() -> str:
    location = DEFAULT_SQLITE_PATH.expanduser().resolve()
    return f"{_ASYNC_SQLITE_DRIVER}:///{location.as_posix()}"


def _upper_or(value: Any, fallback: str) -> str:
    text = "" if value is None else str(value).strip()
    return text.upper() or fallback


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="INTRANET_",
        env_file=".env",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
    )

    logging_level: str = "INFO"

    database_dsn: str | None = None
    database_echo: bool = False
    database_sqlite_journal_mode: str = "WAL"
    database_sqlite_busy_timeout_ms: int = Field(30_000, ge=0)
    # Owner writes rely on taking the SQLite write lock at BEGIN.
    database_sqlite_begin_mode: SQLiteBeginMode | None = "IMMEDIATE"

    owner_department: str = DEFAULT_OWNER_DEPARTMENT
    member_department: str = DEFAULT_MEMBER_DEPARTMENT
    bootstrap_require_empty_directory: bool = True
    password_min_length: int = Field(8, ge=6, le=128)

    audit_enabled: bool = True
    audit_details_max_chars: int = Field(10_000, ge=256)

    @field_validator("logging_level", mode="before")
    @classmethod
    def _normalise_level(cls, value: Any) -> str:
        return _upper_or(value, "INFO")

    @field_validator("database_sqlite_journal_mode", mode="before")
    @classmethod
    def _normalise_journal_mode(cls, value: Any) -> str:
        return _upper_or(value, "WAL")

    @field_validator("database_sqlite_begin_mode", mode="before")
    @classmethod
    def _normalise_begin_mode(cls, value: Any) -> str | None:
        if value is None or not str(value).strip():
            return None
        mode = str(value).strip().upper()
        allowed = get_args(SQLiteBeginMode)
        if mode not in allowed:
            raise ValueError(f"SQLite begin mode must be one of {', '.join(allowed)}")
        return mode

    @field_validator("owner_department", "member_department", mode="before")
    @classmethod
    def _require_department(cls, value: Any, info: ValidationInfo) -> str:
        text = "" if value is None else str(value).strip()
        if not text:
            raise ValueError(f"{info.field_name} must not be blank")
        return text

    @model_validator(mode="after")
    def _use_async_driver(self) -> Settings:
        url = make_url(self.database_dsn or _default_dsn())
        if url.get_backend_name() == "sqlite":
            url = url.set(drivername=_ASYNC_SQLITE_DRIVER)
        self.database_dsn = url.render_as_string(hide_password=False)
        return self

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_dsn).get_backend_name() == "sqlite"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    return Settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = [
    "DEFAULT_MEMBER_DEPARTMENT",
    "DEFAULT_OWNER_DEPARTMENT",
    "SQLiteBeginMode",
    "Settings",
    "get_settings",
    "reload_settings",
]
