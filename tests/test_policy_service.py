"""Tests for policy service."""

import pytest

pytestmark = pytest.mark.unit

from manualtree.exceptions import DuplicateError, NotFoundError, ValidationError
from manualtree.models.policy import Acknowledgement, Policy, PolicyVersion
from manualtree.services.audit import AuditSeverity


@pytest.fixture
def section(manual, section_service):
    return section_service.create_section(manual_id=manual.id, title="Leave", section_id="leave")


def policy_ids(policies):
    return [p.id for p in policies]


class TestCreatePolicy:
    """Tests for adding policies to a section."""

    def test_create_policy_with_first_version(self, policy_service, db_session, section):
        policy = policy_service.create_policy(
            section_id=section.id, title="Annual leave", body_content="20 days", policy_id="p1"
        )

        assert policy.status == "DRAFT"
        assert policy.order_index == 0
        assert policy.created_by_id == "user-1"
        version = db_session.get(PolicyVersion, policy.current_version_id)
        assert version.policy_id == "p1"
        assert version.version_number == 1
        assert version.body_content == "20 days"
        assert version.effective_date is not None

    def test_policies_appended_in_order(self, policy_service, section):
        for pid in ("p1", "p2", "p3"):
            policy_service.create_policy(section_id=section.id, title=f"Policy {pid}", policy_id=pid)
        policies = policy_service.get_policies(section.id)
        assert [(p.id, p.order_index) for p in policies] == [("p1", 0), ("p2", 1), ("p3", 2)]

    def test_create_policy_missing_section(self, policy_service, manual):
        with pytest.raises(NotFoundError):
            policy_service.create_policy(section_id="missing", title="Orphan")

    def test_create_policy_duplicate_id(self, policy_service, section):
        policy_service.create_policy(section_id=section.id, title="One", policy_id="p1")
        with pytest.raises(DuplicateError):
            policy_service.create_policy(section_id=section.id, title="Two", policy_id="p1")

    def test_create_policy_invalid_status(self, policy_service, section):
        with pytest.raises(ValidationError) as exc_info:
            policy_service.create_policy(section_id=section.id, title="One", status="RETIRED")
        assert exc_info.value.field == "status"

    def test_create_policy_empty_title(self, policy_service, section):
        with pytest.raises(ValidationError):
            policy_service.create_policy(section_id=section.id, title="")


class TestOrderPolicies:
    """Tests for policy ordering within a section."""

    @pytest.fixture
    def three_policies(self, policy_service, section):
        for pid in ("p1", "p2", "p3"):
            policy_service.create_policy(section_id=section.id, title=f"Policy {pid}", policy_id=pid)

    def test_reorder_policies(self, policy_service, section, three_policies):
        result = policy_service.reorder_policies(section.id, ["p3", "p1", "p2"])
        assert policy_ids(result) == ["p3", "p1", "p2"]
        assert policy_ids(policy_service.get_policies(section.id)) == ["p3", "p1", "p2"]

    def test_reorder_unlisted_policies_follow(self, policy_service, section, three_policies):
        result = policy_service.reorder_policies(section.id, ["p3"])
        assert [(p.id, p.order_index) for p in result] == [("p3", 0), ("p1", 1), ("p2", 2)]

    def test_reorder_rejects_foreign_policy(
        self, policy_service, section_service, manual, section, three_policies
    ):
        section_service.create_section(manual_id=manual.id, title="Other", section_id="other")
        policy_service.create_policy(section_id="other", title="Elsewhere", policy_id="x1")

        with pytest.raises(ValidationError) as exc_info:
            policy_service.reorder_policies(section.id, ["x1", "p1"])

        assert "x1" in str(exc_info.value)
        assert policy_ids(policy_service.get_policies(section.id)) == ["p1", "p2", "p3"]

    @pytest.mark.parametrize("order", [[], ["p1", "p1"], "p1"])
    def test_reorder_rejects_malformed_order(self, policy_service, section, three_policies, order):
        with pytest.raises(ValidationError):
            policy_service.reorder_policies(section.id, order)

    def test_fix_order_indices(self, policy_service, db_session, section, three_policies):
        for pid, index in (("p1", 7), ("p2", 7), ("p3", 2)):
            db_session.get(Policy, pid).order_index = index
        db_session.commit()

        fixed = policy_service.fix_order_indices(section.id)

        assert [(p.id, p.order_index) for p in fixed] == [("p1", 0), ("p2", 1), ("p3", 2)]

    def test_fix_order_indices_missing_section(self, policy_service):
        with pytest.raises(NotFoundError):
            policy_service.fix_order_indices("missing")


class TestDeletePolicy:
    """Tests for deleting one policy."""

    def test_delete_policy_with_dependents(
        self, policy_service, db_session, policy_records, section, audit_sink
    ):
        policy = policy_service.create_policy(section_id=section.id, title="One", policy_id="p1")
        policy_records(policy.current_version_id, acknowledgements=2, annotations=1)

        counts = policy_service.delete_policy("p1")

        assert counts["policies"] == 1
        assert counts["policy_versions"] == 1
        assert counts["acknowledgements"] == 2
        assert counts["annotations"] == 1
        assert db_session.get(Policy, "p1") is None
        assert db_session.query(Acknowledgement).count() == 0

        event = audit_sink.events[-1]
        assert (event["entity_type"], event["action"]) == ("policy", "DELETE")
        assert event["severity"] == AuditSeverity.HIGH
        assert event["details"]["section_id"] == section.id

    def test_delete_leaves_siblings(self, policy_service, section):
        policy_service.create_policy(section_id=section.id, title="One", policy_id="p1")
        policy_service.create_policy(section_id=section.id, title="Two", policy_id="p2")
        policy_service.delete_policy("p1")
        assert policy_ids(policy_service.get_policies(section.id)) == ["p2"]

    def test_delete_missing_policy(self, policy_service):
        with pytest.raises(NotFoundError):
            policy_service.delete_policy("missing")
