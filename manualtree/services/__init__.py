"""Service layer for business logic and validation."""

from manualtree.services.audit import AuditSeverity, LoggingAuditSink, NullAuditSink
from manualtree.services.manual_service import ManualService
from manualtree.services.policy_service import PolicyService
from manualtree.services.section_service import SectionService

__all__ = [
    "AuditSeverity",
    "LoggingAuditSink",
    "ManualService",
    "NullAuditSink",
    "PolicyService",
    "SectionService",
]
