"""Fire-and-forget audit reporting.

``AuditReporter.report`` never blocks and never raises: the sink write runs
as a background task, and sink failures are logged. ``drain`` waits for
pending writes (shutdown and tests).
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from intranet_access.common.logging import current_session_id, log_context
from intranet_access.settings import Settings

from .schemas import AuditEvent
from .sink import AuditSink

logger = logging.getLogger(__name__)

SENSITIVE_KEY_MARKERS = ("password", "token", "secret", "key")
MAX_DETAIL_STRING_CHARS = 500
REDACTED = "[REDACTED]"


def sanitize_details(details: dict[str, Any], *, max_chars: int) -> dict[str, Any]:
    """Redact secret-looking keys, clip long strings, cap the serialized size."""

    sanitized: dict[str, Any] = {}
    for key, value in details.items():
        if any(marker in key.lower() for marker in SENSITIVE_KEY_MARKERS):
            sanitized[key] = REDACTED
            continue
        if isinstance(value, str) and len(value) > MAX_DETAIL_STRING_CHARS:
            sanitized[key] = value[:MAX_DETAIL_STRING_CHARS] + "..."
            continue
        sanitized[key] = value

    serialized = json.dumps(sanitized, default=str)
    if len(serialized) > max_chars:
        return {
            "note": "Details truncated due to size limit",
            "original_size": len(serialized),
        }
    return sanitized


class AuditReporter:
    """Schedule audit sink writes without affecting the caller."""

    def __init__(
        self,
        sink: AuditSink,
        *,
        enabled: bool = True,
        max_details_chars: int = 10_000,
    ) -> None:
        self._sink = sink
        self._enabled = enabled
        self._max_details_chars = max_details_chars
        self._pending: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(cls, sink: AuditSink, settings: Settings) -> AuditReporter:
        return cls(
            sink,
            enabled=settings.audit_enabled,
            max_details_chars=settings.audit_details_max_chars,
        )

    @property
    def pending(self) -> int:
        return len(self._pending)

    def report(self, event: AuditEvent) -> None:
        if not self._enabled:
            return
        try:
            prepared = event.model_copy(
                update={
                    "details": sanitize_details(
                        event.details, max_chars=self._max_details_chars
                    ),
                    "session_id": event.session_id or current_session_id(),
                }
            )
            task = asyncio.get_running_loop().create_task(self._write(prepared))
        except Exception:
            logger.exception(
                "audit.schedule.failed",
                extra=log_context(user_id=event.user_id, event_type=event.event_type),
            )
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait until every scheduled write has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _write(self, event: AuditEvent) -> None:
        try:
            await self._sink.write(event)
        except Exception:
            logger.exception(
                "audit.write.failed",
                extra=log_context(user_id=event.user_id, event_type=event.event_type),
            )


__all__ = ["AuditReporter", "sanitize_details"]
