"""Database models for Manual Tree."""

from manualtree.models.base import Base
from manualtree.models.manual import Manual
from manualtree.models.policy import (
    Acknowledgement,
    Annotation,
    ApprovalWorkflow,
    DocumentSignature,
    Policy,
    PolicyVersion,
)
from manualtree.models.section import Section

__all__ = [
    "Base",
    "Manual",
    "Section",
    "Policy",
    "PolicyVersion",
    "Acknowledgement",
    "Annotation",
    "ApprovalWorkflow",
    "DocumentSignature",
]
