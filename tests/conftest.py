"""Shared pytest fixtures and test utilities for manualtree tests."""

import os
import tempfile
import uuid
from typing import Any, Generator

import pytest

from manualtree.models.policy import (
    Acknowledgement,
    Annotation,
    ApprovalWorkflow,
    DocumentSignature,
)
from manualtree.services.manual_service import ManualService
from manualtree.services.policy_service import PolicyService
from manualtree.services.section_service import SectionService
from manualtree.storage.database import Database, reset_db


class RecordingAuditSink:
    """Audit sink that keeps every event for inspection."""

    def __init__(self):
        self.events: list[dict[str, Any]] = []

    def record(self, actor_id, entity_type, entity_id, action, details, severity):
        self.events.append(
            {
                "actor_id": actor_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "details": details,
                "severity": severity,
            }
        )

    def actions(self) -> list[str]:
        return [event["action"] for event in self.events]


class FailingAuditSink:
    """Audit sink that always raises."""

    def __init__(self):
        self.calls = 0

    def record(self, *args, **kwargs):
        self.calls += 1
        raise RuntimeError("audit backend unavailable")


@pytest.fixture(scope="function")
def temp_db() -> Generator[Database, None, None]:
    """
    Create a temporary SQLite database for testing.

    Yields:
        Database instance with tables created
    """
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    reset_db()

    database = Database(f"sqlite:///{db_path}")
    database.create_tables()

    yield database

    database.drop_tables()
    database.dispose()
    reset_db()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def db_session(temp_db):
    """Get a database session from temp_db."""
    with temp_db.session() as session:
        yield session


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def manual_service(db_session, audit_sink):
    """Create a manual service instance."""
    return ManualService(db_session, audit_sink=audit_sink, actor_id="user-1")


@pytest.fixture
def section_service(db_session, audit_sink):
    """Create a section service instance."""
    return SectionService(db_session, audit_sink=audit_sink, actor_id="user-1")


@pytest.fixture
def policy_service(db_session, audit_sink):
    """Create a policy service instance."""
    return PolicyService(db_session, audit_sink=audit_sink, actor_id="user-1")


@pytest.fixture
def manual(manual_service):
    """Create an empty manual."""
    return manual_service.create_manual(title="Employee Handbook", manual_id="manual-1")


@pytest.fixture
def other_manual(manual_service):
    """Create a second, empty manual."""
    return manual_service.create_manual(title="Safety Manual", manual_id="manual-2")


def build_tree(section_service: SectionService, manual_id: str, tree: list) -> None:
    """
    Create sections from a nested ``[(id, [children...]), ...]`` description.

    Sections are created parent first, siblings in list order, so creation
    order matches the described order.
    """
    pending = [(None, node) for node in reversed(tree)]
    while pending:
        parent_id, (section_id, children) = pending.pop()
        section_service.create_section(
            manual_id=manual_id,
            title=f"Section {section_id}",
            parent_section_id=parent_id,
            section_id=section_id,
        )
        pending.extend((section_id, child) for child in reversed(children))


def numbers_by_id(section_service: SectionService, manual_id: str) -> dict[str, str]:
    """Map section id to section number for a whole manual."""
    return {s.id: s.section_number for s in section_service.list_sections(manual_id)}


def add_policy_records(
    session,
    policy_version_id: str,
    acknowledgements: int = 0,
    annotations: int = 0,
    approval_workflows: int = 0,
    document_signatures: int = 0,
) -> None:
    """Attach dependent records to a policy version."""
    for i in range(acknowledgements):
        session.add(
            Acknowledgement(id=str(uuid.uuid4()), policy_version_id=policy_version_id, user_id=f"reader-{i}")
        )
    for i in range(annotations):
        session.add(
            Annotation(
                id=str(uuid.uuid4()),
                policy_version_id=policy_version_id,
                user_id=f"reader-{i}",
                content="Please clarify",
            )
        )
    for i in range(approval_workflows):
        session.add(
            ApprovalWorkflow(
                id=str(uuid.uuid4()),
                policy_version_id=policy_version_id,
                requested_by_id="author-1",
                approver_id=f"approver-{i}",
            )
        )
    for i in range(document_signatures):
        session.add(
            DocumentSignature(
                id=str(uuid.uuid4()),
                policy_version_id=policy_version_id,
                signer_id=f"signer-{i}",
                signature_hash="0" * 64,
            )
        )
    session.commit()


@pytest.fixture
def make_tree(section_service):
    """Provide build_tree bound to the section service."""

    def _make(manual_id: str, tree: list) -> None:
        build_tree(section_service, manual_id, tree)

    return _make


@pytest.fixture
def numbers(section_service):
    """Provide numbers_by_id bound to the section service."""

    def _numbers(manual_id: str) -> dict[str, str]:
        return numbers_by_id(section_service, manual_id)

    return _numbers


@pytest.fixture
def failing_audit_sink() -> FailingAuditSink:
    return FailingAuditSink()


@pytest.fixture
def policy_records(db_session):
    """Provide add_policy_records bound to the test session."""

    def _add(policy_version_id: str, **counts: int) -> None:
        add_policy_records(db_session, policy_version_id, **counts)

    return _add
