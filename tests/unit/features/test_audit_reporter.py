from __future__ import annotations

import logging

import pytest

from intranet_access.features.audit import (
    AUDIT_LOGGER_NAME,
    AuditEvent,
    AuditEventType,
    AuditReporter,
    AuditSeverity,
    AuditSink,
    LoggingAuditSink,
    MemoryAuditSink,
    sanitize_details,
)


class _FailingSink(AuditSink):
    async def write(self, event: AuditEvent) -> None:
        raise RuntimeError("sink offline")


def _event(**overrides) -> AuditEvent:
    values = {
        "event_type": AuditEventType.ROLE_CHANGED,
        "severity": AuditSeverity.MEDIUM,
        "action": "users.role",
        "success": True,
        "user_id": "u-1",
    }
    values.update(overrides)
    return AuditEvent(**values)


def test_sanitize_redacts_secret_keys_and_clips_strings() -> None:
    details = {
        "password": "hunter2",
        "apiKey": "abc",
        "refresh_token": "xyz",
        "note": "n" * 600,
        "count": 3,
    }

    sanitized = sanitize_details(details, max_chars=10_000)

    assert sanitized["password"] == "[REDACTED]"
    assert sanitized["apiKey"] == "[REDACTED]"
    assert sanitized["refresh_token"] == "[REDACTED]"
    assert sanitized["note"] == "n" * 500 + "..."
    assert sanitized["count"] == 3


def test_sanitize_replaces_oversized_payload() -> None:
    details = {f"field_{index}": "v" * 400 for index in range(10)}

    sanitized = sanitize_details(details, max_chars=1_000)

    assert sanitized["note"] == "Details truncated due to size limit"
    assert sanitized["original_size"] > 1_000


@pytest.mark.asyncio
async def test_report_is_fire_and_forget_and_drains() -> None:
    sink = MemoryAuditSink()
    reporter = AuditReporter(sink)

    reporter.report(_event(details={"secret": "s"}))
    assert sink.events == []

    await reporter.drain()

    assert reporter.pending == 0
    assert len(sink.events) == 1
    assert sink.events[0].details == {"secret": "[REDACTED]"}


@pytest.mark.asyncio
async def test_disabled_reporter_drops_events() -> None:
    sink = MemoryAuditSink()
    reporter = AuditReporter(sink, enabled=False)

    reporter.report(_event())
    await reporter.drain()

    assert sink.events == []


@pytest.mark.asyncio
async def test_sink_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    reporter = AuditReporter(_FailingSink())

    with caplog.at_level(logging.ERROR, logger="intranet_access.features.audit.reporter"):
        reporter.report(_event())
        await reporter.drain()

    assert any(record.getMessage() == "audit.write.failed" for record in caplog.records)


def test_report_without_running_loop_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    reporter = AuditReporter(MemoryAuditSink())

    with caplog.at_level(logging.ERROR, logger="intranet_access.features.audit.reporter"):
        reporter.report(_event())

    assert any(record.getMessage() == "audit.schedule.failed" for record in caplog.records)
    assert reporter.pending == 0


@pytest.mark.asyncio
async def test_logging_sink_levels_by_severity(caplog: pytest.LogCaptureFixture) -> None:
    sink = LoggingAuditSink()

    with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER_NAME):
        await sink.write(_event())
        await sink.write(
            _event(
                event_type=AuditEventType.UNAUTHORIZED_ACCESS_ATTEMPT,
                severity=AuditSeverity.HIGH,
                success=False,
            )
        )

    levels = {record.getMessage(): record.levelno for record in caplog.records}
    assert levels["audit.role_changed"] == logging.INFO
    assert levels["audit.unauthorized_access_attempt"] == logging.WARNING
