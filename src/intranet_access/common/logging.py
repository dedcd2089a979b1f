"""Console logging for the access core.

Every record renders as one line::

    2025-11-27T02:57:00.302Z WARNING intranet_access.features.authz.evaluator
    [sid=s-alice] authz.denied user_id=u-42 role=agent reason=missing_permission

The ``sid`` slot carries the id of the session binding that is acting in the
current task, so a single sign-in can be followed across the directory, the
evaluator and the audit reporter. Fields passed through ``extra=`` are appended
as ``key=value`` pairs; :func:`log_context` keeps those fields uniform.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from intranet_access.settings import Settings

_SESSION_ID: ContextVar[str | None] = ContextVar("intranet_access_session_id", default=None)

_LINE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s [sid=%(session_id)s] %(message)s"
_MISSING_SESSION = "-"
_INSTALLED_MARKER = "_intranet_access_handler"

# Libraries whose records should flow through the root console handler.
_PROPAGATED_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "aiosqlite")


def _reserved_record_keys() -> frozenset[str]:
    blank = logging.LogRecord("", logging.NOTSET, "", 0, "", None, None)
    return frozenset(blank.__dict__) | {"message", "asctime", "session_id", "color_message"}


_RESERVED_KEYS = _reserved_record_keys()


class ConsoleLogFormatter(logging.Formatter):
    """One line per record: UTC timestamp, level, logger, session, message, extras."""

    def __init__(self) -> None:
        super().__init__(fmt=_LINE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=UTC).strftime(datefmt or self.datefmt)
        return f"{stamp}.{int(record.msecs):03d}Z"

    def format(self, record: logging.LogRecord) -> str:
        if not getattr(record, "session_id", None):
            record.session_id = _SESSION_ID.get() or _MISSING_SESSION
        line = super().format(record)
        pairs = " ".join(
            f"{key}={_render(value)}"
            for key, value in record.__dict__.items()
            if key not in _RESERVED_KEYS and not key.startswith("_")
        )
        return f"{line} {pairs}" if pairs else line


def setup_logging(settings: Settings) -> None:
    """Install the console handler on the root logger.

    The handler is installed once per process. Later calls only move the root
    level to ``settings.logging_level`` (env ``INTRANET_LOGGING_LEVEL``).
    """
    root = logging.getLogger()
    level = logging.getLevelName(settings.logging_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    root.setLevel(level)

    if getattr(root, _INSTALLED_MARKER, False):
        return

    console = logging.StreamHandler()
    console.setFormatter(ConsoleLogFormatter())
    root.handlers = [console]
    for name in _PROPAGATED_LOGGERS:
        library_logger = logging.getLogger(name)
        library_logger.handlers.clear()
        library_logger.propagate = True
    setattr(root, _INSTALLED_MARKER, True)


def bind_session_context(session_id: str | None) -> None:
    """Tag log lines from the current task with ``session_id``."""
    _SESSION_ID.set(session_id)


def clear_session_context() -> None:
    _SESSION_ID.set(None)


def current_session_id() -> str | None:
    return _SESSION_ID.get()


def log_context(
    *,
    user_id: str | None = None,
    role: Any = None,
    permission: Any = None,
    action: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build the ``extra`` mapping for an access log line.

    The named fields are dropped when ``None``; other keyword fields are kept
    and render as ``null``. Enum members are logged by value, so a role shows
    up as ``role=manager`` rather than ``role=Role.MANAGER``::

        logger.info(
            "users.role.change.success",
            extra=log_context(user_id=target.id, role=target.role, actor_id=actor.id),
        )
    """
    named = {"user_id": user_id, "role": role, "permission": permission, "action": action}
    return {
        key: _plain(value)
        for key, value in {**named, **extra}.items()
        if value is not None or key in extra
    }


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def _render(value: Any) -> str:
    return "null" if value is None else str(value)


__all__ = [
    "ConsoleLogFormatter",
    "bind_session_context",
    "clear_session_context",
    "current_session_id",
    "log_context",
    "setup_logging",
]
