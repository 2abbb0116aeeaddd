"""Tests for audit sinks and settings."""

import logging

import pytest

pytestmark = pytest.mark.unit

from manualtree.config import Settings, get_settings
from manualtree.services.audit import (
    AuditSeverity,
    LoggingAuditSink,
    NullAuditSink,
    default_audit_sink,
    emit_audit_event,
)
from manualtree.services.section_service import SectionService


@pytest.fixture
def fresh_settings(monkeypatch):
    """Clear the settings cache around a test that changes the environment."""
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestAuditSinks:
    def test_logging_sink_writes_audit_logger(self, caplog):
        with caplog.at_level(logging.INFO, logger="manualtree.audit"):
            LoggingAuditSink().record(
                "user-1", "section", "s1", "MOVE", {"section_number": "1.2"}, AuditSeverity.MEDIUM
            )
        record = caplog.records[-1]
        assert record.name == "manualtree.audit"
        assert "MOVE section s1 by user-1" in record.getMessage()
        assert record.audit_severity == "MEDIUM"

    def test_emit_reports_failure(self, failing_audit_sink, caplog):
        assert emit_audit_event(failing_audit_sink, None, "section", "s1", "DELETE") is False
        assert "Failed to record audit event DELETE on section s1" in caplog.text

    def test_emit_passes_empty_details(self, audit_sink):
        assert emit_audit_event(audit_sink, "user-1", "manual", "m1", "RENUMBER_SECTIONS") is True
        assert audit_sink.events[-1]["details"] == {}
        assert audit_sink.events[-1]["severity"] == AuditSeverity.INFO

    def test_default_sink_follows_settings(self, fresh_settings):
        fresh_settings.setenv("AUDIT_ENABLED", "false")
        assert isinstance(default_audit_sink(), NullAuditSink)
        get_settings.cache_clear()
        fresh_settings.setenv("AUDIT_ENABLED", "true")
        assert isinstance(default_audit_sink(), LoggingAuditSink)


class TestSettings:
    def test_defaults(self, fresh_settings):
        fresh_settings.delenv("DATABASE_URL", raising=False)
        fresh_settings.delenv("MAX_SECTION_DEPTH", raising=False)
        settings = Settings(_env_file=None)
        assert settings.database_url == "sqlite:///./manualtree.db"
        assert settings.max_section_depth == 10

    def test_environment_overrides(self, fresh_settings):
        fresh_settings.setenv("MAX_SECTION_DEPTH", "3")
        fresh_settings.setenv("DATABASE_URL", "sqlite:///:memory:")
        settings = get_settings()
        assert settings.max_section_depth == 3
        assert settings.get_database_url() == "sqlite:///:memory:"

    def test_depth_limit_reaches_services(self, fresh_settings, db_session, audit_sink):
        fresh_settings.setenv("MAX_SECTION_DEPTH", "1")
        get_settings.cache_clear()
        service = SectionService(db_session, audit_sink=audit_sink)
        assert service.max_depth == 1
        assert service.reorderer.max_depth == 1
