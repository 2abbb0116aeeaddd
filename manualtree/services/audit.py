"""Audit sink contract for structural changes.

Audit events are sent after the structural change has committed. Delivery is
best effort: a sink that raises is logged and ignored, the change stands.
"""

import logging
from enum import Enum
from typing import Any, Optional, Protocol

from manualtree.config import get_settings

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("manualtree.audit")


class AuditSeverity(str, Enum):
    """Severity attached to an audit event."""

    INFO = "INFO"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AuditSink(Protocol):
    """Receiver of audit events."""

    def record(
        self,
        actor_id: Optional[str],
        entity_type: str,
        entity_id: str,
        action: str,
        details: dict[str, Any],
        severity: AuditSeverity,
    ) -> None:
        ...


class LoggingAuditSink:
    """Writes audit events to the ``manualtree.audit`` logger."""

    def record(
        self,
        actor_id: Optional[str],
        entity_type: str,
        entity_id: str,
        action: str,
        details: dict[str, Any],
        severity: AuditSeverity,
    ) -> None:
        level = logging.WARNING if severity == AuditSeverity.CRITICAL else logging.INFO
        audit_logger.log(
            level,
            "%s %s %s by %s: %s",
            action,
            entity_type,
            entity_id,
            actor_id or "anonymous",
            details,
            extra={"audit_severity": severity.value},
        )


class NullAuditSink:
    """Discards audit events."""

    def record(self, *args: Any, **kwargs: Any) -> None:
        return None


def default_audit_sink() -> AuditSink:
    """Sink used when a service is not given one."""
    if get_settings().audit_enabled:
        return LoggingAuditSink()
    return NullAuditSink()


def emit_audit_event(
    sink: AuditSink,
    actor_id: Optional[str],
    entity_type: str,
    entity_id: str,
    action: str,
    details: Optional[dict[str, Any]] = None,
    severity: AuditSeverity = AuditSeverity.INFO,
) -> bool:
    """
    Send an audit event without letting sink failures reach the caller.

    Returns:
        True if the sink accepted the event, False if it raised
    """
    try:
        sink.record(actor_id, entity_type, entity_id, action, details or {}, severity)
        return True
    except Exception:
        logger.exception("Failed to record audit event %s on %s %s", action, entity_type, entity_id)
        return False
