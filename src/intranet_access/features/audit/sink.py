"""Audit sinks: where reported events end up."""

from __future__ import annotations

import logging

from intranet_access.common.logging import log_context

from .schemas import AuditEvent, AuditEventType, AuditSeverity

AUDIT_LOGGER_NAME = "intranet_access.audit"


class AuditSink:
    """Interface for audit destinations."""

    async def write(self, event: AuditEvent) -> None:  # pragma: no cover - interface only
        raise NotImplementedError


class LoggingAuditSink(AuditSink):
    """Write events to the ``intranet_access.audit`` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)

    async def write(self, event: AuditEvent) -> None:
        level = (
            logging.WARNING
            if event.severity in (AuditSeverity.HIGH, AuditSeverity.CRITICAL)
            else logging.INFO
        )
        self._logger.log(
            level,
            f"audit.{event.event_type.value}",
            extra=log_context(
                user_id=event.user_id,
                role=event.user_role,
                action=event.action,
                severity=event.severity,
                success=event.success,
                resource=event.resource,
                resource_id=event.resource_id,
                audit_details=event.details or None,
            ),
        )


class MemoryAuditSink(AuditSink):
    """Keep events in a list; used by tests and embedded callers."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    async def write(self, event: AuditEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: AuditEventType | str) -> list[AuditEvent]:
        return [event for event in self.events if event.event_type == event_type]


__all__ = ["AUDIT_LOGGER_NAME", "AuditSink", "LoggingAuditSink", "MemoryAuditSink"]
