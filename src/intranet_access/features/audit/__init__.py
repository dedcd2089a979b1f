"""Audit trail for security-relevant events."""

from .reporter import AuditReporter, sanitize_details
from .schemas import AuditEvent, AuditEventType, AuditSeverity
from .sink import AUDIT_LOGGER_NAME, AuditSink, LoggingAuditSink, MemoryAuditSink

__all__ = [
    "AUDIT_LOGGER_NAME",
    "AuditEvent",
    "AuditEventType",
    "AuditReporter",
    "AuditSeverity",
    "AuditSink",
    "LoggingAuditSink",
    "MemoryAuditSink",
    "sanitize_details",
]
