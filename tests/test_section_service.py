"""Tests for section creation, reads, updates and renumbering."""

import pytest

pytestmark = pytest.mark.unit

from manualtree.exceptions import (
    ConflictError,
    DuplicateError,
    NotFoundError,
    TreeCorruptionError,
    ValidationError,
)
from manualtree.models.section import Section
from manualtree.services.audit import AuditSeverity
from manualtree.services.section.numbering import SectionNode, compute_section_numbers
from manualtree.services.section.validation import SectionPatch


class TestCreateSection:
    """Tests for section creation."""

    def test_create_root_section(self, section_service, manual):
        """A first root section is numbered 1.0 at level 0."""
        section = section_service.create_section(manual_id=manual.id, title="Introduction")
        assert section.id is not None
        assert section.manual_id == manual.id
        assert section.parent_section_id is None
        assert section.level == 0
        assert section.order_index == 0
        assert section.section_number == "1.0"
        assert section.is_collapsed is False
        assert section.created_by_id == "user-1"

    def test_create_appends_after_siblings(self, section_service, manual):
        """Each new root takes the next slot and number."""
        first = section_service.create_section(manual_id=manual.id, title="One")
        second = section_service.create_section(manual_id=manual.id, title="Two")
        third = section_service.create_section(manual_id=manual.id, title="Three")
        assert [s.order_index for s in (first, second, third)] == [0, 1, 2]
        assert [s.section_number for s in (first, second, third)] == ["1.0", "2.0", "3.0"]

    def test_create_child_sections(self, section_service, manual):
        """Children extend the parent's number without its trailing .0."""
        section_service.create_section(manual_id=manual.id, title="One")
        parent = section_service.create_section(manual_id=manual.id, title="Two")
        child = section_service.create_section(
            manual_id=manual.id, title="Two A", parent_section_id=parent.id
        )
        grandchild = section_service.create_section(
            manual_id=manual.id, title="Two A i", parent_section_id=child.id
        )
        assert child.section_number == "2.1"
        assert child.level == 1
        assert grandchild.section_number == "2.1.1"
        assert grandchild.level == 2

    def test_create_with_explicit_id_and_description(self, section_service, manual):
        section = section_service.create_section(
            manual_id=manual.id,
            title="Scope",
            description="Who this manual applies to",
            section_id="scope",
        )
        assert section.id == "scope"
        assert section.description == "Who this manual applies to"

    def test_create_duplicate_id(self, section_service, manual):
        section_service.create_section(manual_id=manual.id, title="Scope", section_id="scope")
        with pytest.raises(DuplicateError):
            section_service.create_section(manual_id=manual.id, title="Again", section_id="scope")

    def test_create_missing_manual(self, section_service):
        with pytest.raises(NotFoundError):
            section_service.create_section(manual_id="no-such-manual", title="Orphan")

    def test_create_missing_parent(self, section_service, manual):
        with pytest.raises(NotFoundError):
            section_service.create_section(
                manual_id=manual.id, title="Orphan", parent_section_id="missing"
            )

    def test_create_parent_in_other_manual(self, section_service, manual, other_manual):
        foreign = section_service.create_section(manual_id=other_manual.id, title="Foreign")
        with pytest.raises(ValidationError) as exc_info:
            section_service.create_section(
                manual_id=manual.id, title="Child", parent_section_id=foreign.id
            )
        assert exc_info.value.field == "parent_section_id"

    @pytest.mark.parametrize("title", ["", "   ", None, "x" * 501])
    def test_create_invalid_title(self, section_service, manual, title):
        with pytest.raises(ValidationError):
            section_service.create_section(manual_id=manual.id, title=title)

    def test_create_too_deep(self, section_service, manual):
        section_service.max_depth = 1
        root = section_service.create_section(manual_id=manual.id, title="Root")
        child = section_service.create_section(
            manual_id=manual.id, title="Child", parent_section_id=root.id
        )
        with pytest.raises(ValidationError):
            section_service.create_section(
                manual_id=manual.id, title="Grandchild", parent_section_id=child.id
            )

    def test_create_advances_tree_version(self, section_service, manual_service, manual):
        section_service.create_section(manual_id=manual.id, title="One")
        section_service.create_section(manual_id=manual.id, title="Two")
        assert manual_service.get_manual(manual.id).tree_version == 2

    def test_create_emits_audit_event(self, section_service, manual, audit_sink):
        section = section_service.create_section(manual_id=manual.id, title="One")
        event = audit_sink.events[-1]
        assert event["action"] == "CREATE"
        assert event["entity_type"] == "section"
        assert event["entity_id"] == section.id
        assert event["actor_id"] == "user-1"
        assert event["details"]["section_number"] == "1.0"

    def test_create_root_after_delete_keeps_numbers_unique(self, section_service, manual, make_tree, numbers):
        make_tree(manual.id, [("a", []), ("b", []), ("c", [])])
        section_service.delete_section("b", renumber=False)
        created = section_service.create_section(manual_id=manual.id, title="New", section_id="d")

        assert created.section_number == "3.0"
        assert numbers(manual.id) == {"a": "1.0", "c": "2.0", "d": "3.0"}
        stored = section_service.list_sections(manual.id)
        assert numbers(manual.id) == compute_section_numbers(SectionNode.from_section(s) for s in stored)

    def test_create_child_after_delete_keeps_numbers_unique(self, section_service, manual, make_tree, numbers):
        make_tree(manual.id, [("a", [("a1", []), ("a2", []), ("a3", [])])])
        section_service.delete_section("a1", renumber=False)
        section_service.create_section(
            manual_id=manual.id, title="New", parent_section_id="a", section_id="a4"
        )

        current = numbers(manual.id)
        assert current == {"a": "1.0", "a2": "1.1", "a3": "1.2", "a4": "1.3"}
        assert len(set(current.values())) == len(current)
        stored = section_service.list_sections(manual.id)
        assert current == compute_section_numbers(SectionNode.from_section(s) for s in stored)
        assert sorted(s.order_index for s in stored if s.parent_section_id == "a") == [0, 1, 2]


class TestReadSections:
    """Tests for flat listing, hierarchy assembly and paths."""

    def test_get_section(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [])])
        assert section_service.get_section("a").title == "Section a"

    def test_get_missing_section(self, section_service):
        with pytest.raises(NotFoundError):
            section_service.get_section("missing")

    def test_list_sections_ordered_by_level_then_order(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [("a1", []), ("a2", [])]), ("b", [("b1", [])])])
        listed = section_service.list_sections(manual.id)
        assert [s.id for s in listed] == ["a", "b", "a1", "b1", "a2"]

    def test_list_sections_includes_policies(self, section_service, policy_service, manual, make_tree):
        make_tree(manual.id, [("a", [])])
        policy_service.create_policy(section_id="a", title="Second", policy_id="p2")
        policy_service.create_policy(section_id="a", title="First", policy_id="p1")
        policy_service.reorder_policies("a", ["p1", "p2"])
        listed = section_service.list_sections(manual.id)
        assert [p.id for p in listed[0].policies] == ["p1", "p2"]

    def test_list_sections_missing_manual(self, section_service):
        with pytest.raises(NotFoundError):
            section_service.list_sections("missing")

    def test_empty_hierarchy(self, section_service, manual):
        assert section_service.get_hierarchy(manual.id) == []

    def test_get_hierarchy(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [("a1", [("a1x", [])]), ("a2", [])]), ("b", [])])
        roots = section_service.get_hierarchy(manual.id)
        assert [r.id for r in roots] == ["a", "b"]
        assert [c.id for c in roots[0].children] == ["a1", "a2"]
        assert [c.id for c in roots[0].children[0].children] == ["a1x"]
        assert roots[1].children == []
        assert [n.section.section_number for n in roots[0].walk()] == ["1.0", "1.1", "1.1.1", "1.2"]

    def test_get_section_path(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [("a1", [("a1x", [])])])])
        path = section_service.get_section_path("a1x")
        assert [s.id for s in path] == ["a", "a1", "a1x"]

    def test_get_section_path_missing(self, section_service):
        with pytest.raises(NotFoundError):
            section_service.get_section_path("missing")


class TestUpdateSection:
    """Tests for descriptive updates."""

    def test_update_title_and_description(self, section_service, manual, make_tree, audit_sink):
        make_tree(manual.id, [("a", [])])
        section = section_service.update_section(
            "a", {"title": "Purpose", "description": "Why we have rules"}
        )
        assert section.title == "Purpose"
        assert section.description == "Why we have rules"
        assert audit_sink.events[-1]["action"] == "UPDATE"
        assert audit_sink.events[-1]["details"]["fields"] == ["title", "description"]

    def test_update_with_patch_object(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [])])
        section = section_service.update_section("a", SectionPatch(is_collapsed=True))
        assert section.is_collapsed is True

    def test_update_does_not_touch_tree_shape(self, section_service, manual_service, manual, make_tree):
        make_tree(manual.id, [("a", [("a1", [])])])
        version = manual_service.get_manual(manual.id).tree_version
        section = section_service.update_section("a1", {"title": "Renamed"})
        assert section.section_number == "1.1"
        assert section.parent_section_id == "a"
        assert manual_service.get_manual(manual.id).tree_version == version

    def test_update_rejects_structural_fields(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", []), ("b", [])])
        with pytest.raises(ValidationError) as exc_info:
            section_service.update_section("b", {"parent_section_id": "a"})
        assert exc_info.value.field == "parent_section_id"

    def test_update_invalid_value_writes_nothing(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [])])
        with pytest.raises(ValidationError):
            section_service.update_section("a", {"title": "Fine", "is_collapsed": "yes"})
        assert section_service.get_section("a").title == "Section a"

    def test_update_clears_description(self, section_service, manual, make_tree, audit_sink):
        make_tree(manual.id, [("a", [])])
        section_service.update_section("a", {"description": "Temporary note"})
        section = section_service.update_section("a", {"description": None})
        assert section.description is None
        assert section.title == "Section a"
        assert audit_sink.events[-1]["details"]["fields"] == ["description"]

    def test_omitted_description_is_kept(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [])])
        section_service.update_section("a", {"description": "Keep me"})
        section = section_service.update_section("a", SectionPatch(title="Renamed"))
        assert section.description == "Keep me"

    def test_update_rejects_null_title(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [])])
        with pytest.raises(ValidationError) as exc_info:
            section_service.update_section("a", {"title": None})
        assert exc_info.value.field == "title"
        assert section_service.get_section("a").title == "Section a"

    def test_update_missing_section(self, section_service):
        with pytest.raises(NotFoundError):
            section_service.update_section("missing", {"title": "Nope"})

    def test_unchanged_update_emits_no_event(self, section_service, manual, make_tree, audit_sink):
        make_tree(manual.id, [("a", [])])
        before = len(audit_sink.events)
        section_service.update_section("a", {"title": "Section a"})
        assert len(audit_sink.events) == before

    def test_toggle_collapse(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [])])
        assert section_service.toggle_collapse("a").is_collapsed is True
        assert section_service.toggle_collapse("a").is_collapsed is False


class TestReorderSiblings:
    """Tests for reordering the children of one parent."""

    def test_reorder_roots(self, section_service, manual, make_tree, numbers):
        make_tree(manual.id, [("a", [("a1", [])]), ("b", []), ("c", [])])
        section_service.reorder_siblings(manual.id, None, ["c", "a", "b"])
        assert numbers(manual.id) == {"c": "1.0", "a": "2.0", "a1": "2.1", "b": "3.0"}

    def test_reorder_children(self, section_service, manual, make_tree, numbers):
        make_tree(manual.id, [("a", [("a1", []), ("a2", []), ("a3", [])])])
        section_service.reorder_siblings(manual.id, "a", ["a3", "a1", "a2"])
        result = numbers(manual.id)
        assert (result["a3"], result["a1"], result["a2"]) == ("1.1", "1.2", "1.3")

    def test_reorder_must_name_every_child(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", []), ("b", []), ("c", [])])
        with pytest.raises(ValidationError):
            section_service.reorder_siblings(manual.id, None, ["c", "a"])

    def test_reorder_rejects_foreign_ids(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", [("a1", [])]), ("b", [])])
        with pytest.raises(ValidationError):
            section_service.reorder_siblings(manual.id, None, ["b", "a", "a1"])

    def test_reorder_emits_audit_event(self, section_service, manual, make_tree, audit_sink):
        make_tree(manual.id, [("a", []), ("b", [])])
        section_service.reorder_siblings(manual.id, None, ["b", "a"])
        event = audit_sink.events[-1]
        assert (event["entity_type"], event["action"]) == ("manual", "REORDER_SIBLINGS")
        assert event["details"]["section_order"] == ["b", "a"]

    def test_reorder_version_conflict(self, section_service, manual, make_tree):
        make_tree(manual.id, [("a", []), ("b", [])])
        with pytest.raises(ConflictError):
            section_service.reorder_siblings(manual.id, None, ["b", "a"], expected_version=0)


class TestRenumberAll:
    """Tests for the full renumber pass."""

    def test_renumber_repairs_stale_numbers(self, section_service, db_session, manual, make_tree, numbers):
        make_tree(manual.id, [("a", [("a1", [])]), ("b", [])])
        b = db_session.get(Section, "b")
        b.section_number = "7.3"
        b.level = 4
        b.order_index = 12
        db_session.commit()

        section_service.renumber_all(manual.id)

        b = section_service.get_section("b")
        assert (b.section_number, b.level, b.order_index) == ("2.0", 0, 1)
        assert numbers(manual.id) == {"a": "1.0", "a1": "1.1", "b": "2.0"}

    def test_renumber_is_idempotent(self, section_service, manual, make_tree, numbers):
        make_tree(manual.id, [("a", [("a1", []), ("a2", [])]), ("b", [])])
        before = numbers(manual.id)
        section_service.renumber_all(manual.id)
        section_service.renumber_all(manual.id)
        assert numbers(manual.id) == before

    def test_renumber_reports_cycles(self, section_service, db_session, manual, make_tree):
        make_tree(manual.id, [("a", [("a1", [])])])
        db_session.get(Section, "a").parent_section_id = "a1"
        db_session.commit()
        with pytest.raises(TreeCorruptionError):
            section_service.renumber_all(manual.id)

    def test_renumber_missing_manual(self, section_service):
        with pytest.raises(NotFoundError):
            section_service.renumber_all("missing")

    def test_renumber_emits_audit(self, section_service, manual, make_tree, audit_sink):
        make_tree(manual.id, [("a", [])])
        section_service.renumber_all(manual.id)
        event = audit_sink.events[-1]
        assert event["action"] == "RENUMBER_SECTIONS"
        assert event["entity_type"] == "manual"
        assert event["severity"] == AuditSeverity.INFO
