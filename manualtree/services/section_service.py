"""Section service layer for business logic and validation."""

import logging
import uuid
from typing import Any, Optional

from sqlalchemy.orm import Session

from manualtree.config import get_settings
from manualtree.exceptions import (
    ConflictError,
    DatabaseError,
    DuplicateError,
    InvalidMoveError,
    NotFoundError,
    TreeCorruptionError,
    ValidationError,
)
from manualtree.models.section import Section
from manualtree.services.audit import (
    AuditSeverity,
    AuditSink,
    default_audit_sink,
    emit_audit_event,
)
from manualtree.services.section.cascade import CascadeDeleter, CascadeDeleteResult
from manualtree.services.section.numbering import number_for_new_section
from manualtree.services.section.reordering import SectionReorderer, plan_hierarchy
from manualtree.services.section.tree_operations import SectionTreeBuilder, SectionTreeNode
from manualtree.services.section.validation import (
    HierarchyNode,
    SectionPatch,
    SectionValidator,
    parse_forest,
)
from manualtree.services.section.versioning import TreeVersionGuard
from manualtree.storage.repositories import (
    ManualRepository,
    PolicyRepository,
    SectionRepository,
)

logger = logging.getLogger(__name__)

# Errors that already describe the failure and pass through unchanged
DOMAIN_ERRORS = (
    ConflictError,
    DuplicateError,
    InvalidMoveError,
    NotFoundError,
    TreeCorruptionError,
    ValidationError,
)


class SectionService:
    """Service layer for the section tree of a manual.

    Every structural write (create, move, bulk reorder, renumber, delete) runs
    as one transaction that also advances the manual's tree version; on any
    failure the transaction is rolled back in full.
    """

    def __init__(
        self,
        session: Session,
        audit_sink: AuditSink | None = None,
        actor_id: str | None = None,
    ):
        """
        Initialize section service with database session.

        Args:
            session: SQLAlchemy database session
            audit_sink: Receiver of post-commit audit events (default from settings)
            actor_id: User performing the operations, passed to the audit sink
        """
        settings = get_settings()
        self.session = session
        self.audit_sink = audit_sink or default_audit_sink()
        self.actor_id = actor_id
        self.max_depth = settings.max_section_depth
        self.manual_repo = ManualRepository(session)
        self.section_repo = SectionRepository(session)
        self.policy_repo = PolicyRepository(session)
        self.validator = SectionValidator()
        self.tree_builder = SectionTreeBuilder(self.section_repo)
        self.reorderer = SectionReorderer(
            self.session, self.section_repo, self.tree_builder, self.max_depth
        )
        self.deleter = CascadeDeleter(self.section_repo, self.policy_repo)
        self.guard = TreeVersionGuard(
            self.manual_repo, lock_rows=session.get_bind().dialect.name == "postgresql"
        )

    def _require_manual(self, manual_id: str) -> None:
        if self.manual_repo.get_by_id(manual_id) is None:
            raise NotFoundError("Manual", manual_id)

    def _require_section(self, section_id: str) -> Section:
        section = self.section_repo.get_by_id(section_id)
        if section is None:
            raise NotFoundError("Section", section_id)
        return section

    def _audit(
        self,
        entity_id: str,
        action: str,
        details: dict[str, Any],
        severity: AuditSeverity = AuditSeverity.LOW,
    ) -> None:
        emit_audit_event(
            self.audit_sink, self.actor_id, "section", entity_id, action, details, severity
        )

    def create_section(
        self,
        manual_id: str,
        title: str,
        description: str | None = None,
        parent_section_id: str | None = None,
        section_id: str | None = None,
        created_by_id: str | None = None,
    ) -> Section:
        """
        Create a new section after the last sibling under its parent.

        The manual is renumbered in the same transaction, so gaps left by an
        earlier delete are closed.

        Args:
            manual_id: Manual ID (required)
            title: Section title (required, non-empty)
            description: Optional section description
            parent_section_id: Optional parent section ID for nesting
            section_id: Optional section ID. If not provided, generates a UUID.
            created_by_id: Optional creating user ID (defaults to the service actor)

        Returns:
            Created section with level, order_index and section_number set

        Raises:
            ValidationError: If title, description or IDs are invalid, or the
                parent belongs to another manual or is too deep
            NotFoundError: If manual or parent section is not found
            DuplicateError: If section with same ID already exists
            ConflictError: If the tree changed concurrently
            DatabaseError: If database operation fails
        """
        self.validator.validate_title(title)
        self.validator.validate_description(description)
        self.validator.validate_id(manual_id, "manual_id")

        self._require_manual(manual_id)

        parent: Optional[Section] = None
        if parent_section_id is not None:
            self.validator.validate_id(parent_section_id, "parent_section_id")
            parent = self.section_repo.get_by_id(parent_section_id)
            if parent is None:
                raise NotFoundError("Section", parent_section_id)
            if parent.manual_id != manual_id:
                raise ValidationError(
                    "Parent section must belong to the same manual", "parent_section_id"
                )
            if parent.level + 1 > self.max_depth:
                raise ValidationError(
                    f"Sections cannot be nested deeper than {self.max_depth} levels",
                    "parent_section_id",
                )

        if section_id is None:
            section_id = str(uuid.uuid4())
        else:
            self.validator.validate_id(section_id)

        if self.section_repo.get_by_id(section_id) is not None:
            raise DuplicateError("Section", "id", section_id)

        try:
            self.guard.claim(manual_id)
            siblings = self.section_repo.get_siblings(manual_id, parent_section_id)
            order_index = max(s.order_index for s in siblings) + 1 if siblings else 0
            section = Section(
                id=section_id,
                manual_id=manual_id,
                parent_section_id=parent_section_id,
                level=parent.level + 1 if parent is not None else 0,
                section_number=number_for_new_section(
                    parent.section_number if parent is not None else None, siblings
                ),
                order_index=order_index,
                title=title,
                description=description,
                is_collapsed=False,
                created_by_id=created_by_id or self.actor_id,
            )
            self.section_repo.create(section)
            # Siblings may keep gaps from a non-compacting delete
            self.reorderer.renumber_manual(manual_id)
            self.session.commit()

        except DOMAIN_ERRORS:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to create section: {str(e)}", e) from e

        self._audit(
            section.id,
            "CREATE",
            {"manual_id": manual_id, "section_number": section.section_number, "title": title},
        )
        return section

    def get_section(self, section_id: str) -> Section:
        """
        Get section by ID.

        Raises:
            ValidationError: If section_id is invalid
            NotFoundError: If section is not found
        """
        self.validator.validate_id(section_id)
        return self._require_section(section_id)

    def list_sections(self, manual_id: str) -> list[Section]:
        """
        Get all sections of a manual as a flat list with their policies.

        Args:
            manual_id: Manual ID

        Returns:
            Sections ordered by (level, order_index)

        Raises:
            ValidationError: If manual_id is invalid
            NotFoundError: If manual is not found
            DatabaseError: If database operation fails
        """
        self.validator.validate_id(manual_id, "manual_id")

        try:
            self._require_manual(manual_id)
            return self.section_repo.get_by_manual_id(manual_id, include_policies=True)

        except (NotFoundError, ValidationError):
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to list sections: {str(e)}", e) from e

    def get_hierarchy(self, manual_id: str) -> list[SectionTreeNode]:
        """
        Get the nested section forest of a manual.

        Returns:
            Root nodes in sibling order; each node carries its section (with
            policies loaded) and its children

        Raises:
            ValidationError: If manual_id is invalid
            NotFoundError: If manual is not found
            DatabaseError: If database operation fails
        """
        self.validator.validate_id(manual_id, "manual_id")

        try:
            self._require_manual(manual_id)
            return self.tree_builder.build_hierarchy(manual_id)

        except (NotFoundError, ValidationError):
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to build hierarchy: {str(e)}", e) from e

    def get_section_path(self, section_id: str) -> list[Section]:
        """
        Get the path from root (manual level) to the specified section.

        Returns:
            List of sections from root to the specified section (inclusive)

        Raises:
            ValidationError: If section_id is invalid
            NotFoundError: If section is not found
            TreeCorruptionError: If the parent chain loops
        """
        self.validator.validate_id(section_id)
        path = self.section_repo.get_path_to_root(section_id)
        if not path:
            raise NotFoundError("Section", section_id)
        return path

    def update_section(
        self,
        section_id: str,
        patch: SectionPatch | dict[str, Any],
    ) -> Section:
        """
        Update a section's title, description and/or collapsed flag.

        Never changes parent, level, order or number.

        Args:
            section_id: Section ID
            patch: Fields to change; omitted fields keep their value

        Returns:
            Updated section

        Raises:
            ValidationError: If section_id or any patch field is invalid
            NotFoundError: If section is not found
            DatabaseError: If database operation fails
        """
        self.validator.validate_id(section_id)
        if not isinstance(patch, SectionPatch):
            patch = SectionPatch.from_dict(patch)
        patch.validate()

        try:
            section = self._require_section(section_id)
            changed = patch.apply_to(section)
            if changed:
                self.section_repo.update(section)
            self.session.commit()

        except (NotFoundError, ValidationError):
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to update section: {str(e)}", e) from e

        if changed:
            self._audit(section.id, "UPDATE", {"fields": changed})
        return section

    def toggle_collapse(self, section_id: str) -> Section:
        """Flip a section's collapsed flag."""
        section = self.get_section(section_id)
        return self.update_section(section_id, SectionPatch(is_collapsed=not section.is_collapsed))

    def move_section(
        self,
        section_id: str,
        new_parent_section_id: str | None,
        new_order_index: int,
        expected_version: int | None = None,
    ) -> Section:
        """
        Move a section (with its subtree) under a new parent at a given position.

        Args:
            section_id: Section ID to move
            new_parent_section_id: New parent section ID (None for top-level)
            new_order_index: 0-based position among the new siblings; past the
                end appends
            expected_version: Tree version the caller last saw (optional)

        Returns:
            The moved section, renumbered

        Raises:
            ValidationError: If IDs or the order index are malformed
            NotFoundError: If section or new parent is not found
            InvalidMoveError: If the move would create a cycle, cross manuals
                or nest too deep
            ConflictError: If the tree changed since expected_version
            DatabaseError: If database operation fails
        """
        self.validator.validate_id(section_id)
        if new_parent_section_id is not None:
            self.validator.validate_id(new_parent_section_id, "new_parent_section_id")
        self.validator.validate_order_index(new_order_index)
        self.validator.validate_expected_version(expected_version)

        section = self._require_section(section_id)
        new_parent = self.reorderer.check_move(section, new_parent_section_id)
        old_number = section.section_number

        try:
            self.guard.claim(section.manual_id, expected_version)
            self.reorderer.move_section(section, new_parent, new_order_index)
            self.session.commit()

        except DOMAIN_ERRORS:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to move section: {str(e)}", e) from e

        self._audit(
            section.id,
            "MOVE",
            {
                "parent_section_id": new_parent_section_id,
                "order_index": section.order_index,
                "previous_number": old_number,
                "section_number": section.section_number,
            },
            AuditSeverity.MEDIUM,
        )
        return section

    def apply_hierarchy(
        self,
        manual_id: str,
        tree: list[HierarchyNode] | list[dict[str, Any]],
        expected_version: int | None = None,
        allow_partial: bool = False,
    ) -> list[Section]:
        """
        Apply a complete ordered forest (a drag-and-drop commit) in one transaction.

        Each submitted node gets parent = the node it is nested in, level =
        its depth and order_index = its position among its submitted
        siblings; numbers are then re-derived for the whole manual.

        Args:
            manual_id: Manual ID
            tree: Root nodes, each ``{"id": ..., "children": [...]}``
            expected_version: Tree version the caller last saw (optional)
            allow_partial: Accept a payload that leaves out sections of the
                manual; those keep their parent and relative order

        Returns:
            Every section of the manual after the change

        Raises:
            ValidationError: If the payload is malformed, repeats a section or
                (unless allow_partial) leaves sections out
            NotFoundError: If manual or a submitted section is not found
            InvalidMoveError: If a section belongs to another manual, nesting is
                too deep or the result is not a tree
            ConflictError: If the tree changed since expected_version
            DatabaseError: If database operation fails
        """
        self.validator.validate_id(manual_id, "manual_id")
        self.validator.validate_expected_version(expected_version)
        forest = parse_forest(tree)
        placements = plan_hierarchy(forest, self.max_depth)

        self._require_manual(manual_id)
        sections_by_id = {s.id: s for s in self.section_repo.get_by_manual_id(manual_id)}
        for placement in placements:
            if placement.section_id in sections_by_id:
                continue
            if self.section_repo.get_by_id(placement.section_id) is not None:
                raise InvalidMoveError(
                    f"Section '{placement.section_id}' belongs to a different manual",
                    section_id=placement.section_id,
                )
            raise NotFoundError("Section", placement.section_id)

        if not allow_partial:
            missing = sorted(set(sections_by_id) - {p.section_id for p in placements})
            if missing:
                raise ValidationError(
                    f"Hierarchy leaves out sections of the manual: {', '.join(missing)}",
                    "tree",
                )

        try:
            self.guard.claim(manual_id, expected_version)
            sections = self.reorderer.apply_hierarchy(manual_id, placements, sections_by_id)
            self.session.commit()

        except DOMAIN_ERRORS:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to apply hierarchy: {str(e)}", e) from e

        emit_audit_event(
            self.audit_sink,
            self.actor_id,
            "manual",
            manual_id,
            "REORDER_SECTIONS",
            {"sections": len(placements), "partial": allow_partial},
            AuditSeverity.MEDIUM,
        )
        return sections

    def reorder_siblings(
        self,
        manual_id: str,
        parent_section_id: str | None,
        section_order: list[str],
        expected_version: int | None = None,
    ) -> list[Section]:
        """
        Reorder the children of one parent (or the root sections).

        Args:
            manual_id: Manual ID
            parent_section_id: Parent section ID (None for top-level sections)
            section_order: Every child id, in the desired order

        Returns:
            Every section of the manual after renumbering

        Raises:
            ValidationError: If section_order is not exactly the current children
            NotFoundError: If manual or parent is not found
            ConflictError: If the tree changed since expected_version
            DatabaseError: If database operation fails
        """
        self.validator.validate_id(manual_id, "manual_id")
        if not isinstance(section_order, list) or not section_order:
            raise ValidationError("section_order must be a non-empty list", "section_order")
        for section_id in section_order:
            self.validator.validate_id(section_id, "section_order")
        self.validator.validate_expected_version(expected_version)

        self._require_manual(manual_id)
        if parent_section_id is not None:
            parent = self._require_section(parent_section_id)
            if parent.manual_id != manual_id:
                raise ValidationError(
                    "Parent section must belong to the same manual", "parent_section_id"
                )

        try:
            self.guard.claim(manual_id, expected_version)
            sections = self.reorderer.reorder_siblings(manual_id, parent_section_id, section_order)
            self.session.commit()

        except DOMAIN_ERRORS:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to reorder sections: {str(e)}", e) from e

        emit_audit_event(
            self.audit_sink,
            self.actor_id,
            "manual",
            manual_id,
            "REORDER_SIBLINGS",
            {"parent_section_id": parent_section_id, "section_order": list(section_order)},
            AuditSeverity.MEDIUM,
        )
        return sections

    def renumber_all(self, manual_id: str, expected_version: int | None = None) -> list[Section]:
        """
        Force a full renumber pass over a manual.

        Re-derives level and number for every section and closes gaps in
        sibling order. Useful to repair a tree after deletions.

        Returns:
            Every section of the manual, ordered by (level, order_index)

        Raises:
            ValidationError: If manual_id is invalid
            NotFoundError: If manual is not found
            TreeCorruptionError: If stored parent links do not form a tree
            ConflictError: If the tree changed since expected_version
            DatabaseError: If database operation fails
        """
        self.validator.validate_id(manual_id, "manual_id")
        self.validator.validate_expected_version(expected_version)

        try:
            self.guard.claim(manual_id, expected_version)
            sections = self.reorderer.renumber_manual(manual_id)
            self.session.commit()

        except DOMAIN_ERRORS:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to renumber sections: {str(e)}", e) from e

        emit_audit_event(
            self.audit_sink, self.actor_id, "manual", manual_id, "RENUMBER_SECTIONS",
            {"sections": len(sections)},
        )
        return sections

    def delete_section(
        self,
        section_id: str,
        renumber: bool = False,
        expected_version: int | None = None,
    ) -> CascadeDeleteResult:
        """
        Delete a section, all of its subsections and every record their policies own.

        Sibling order of the surviving sections is left as is unless
        ``renumber`` is set, in which case the full renumber pass runs in the
        same transaction.

        Args:
            section_id: Section ID
            renumber: Renumber the manual after removal
            expected_version: Tree version the caller last saw (optional)

        Returns:
            Removed section ids and per-table row counts

        Raises:
            ValidationError: If section_id is invalid
            NotFoundError: If section is not found
            TreeCorruptionError: If the subtree loops
            ConflictError: If the tree changed since expected_version
            DatabaseError: If database operation fails
        """
        self.validator.validate_id(section_id)
        self.validator.validate_expected_version(expected_version)

        section = self._require_section(section_id)
        manual_id = section.manual_id
        details: dict[str, Any] = {
            "manual_id": manual_id,
            "title": section.title,
            "section_number": section.section_number,
        }

        try:
            self.guard.claim(manual_id, expected_version)
            result = self.deleter.delete_subtree(section_id)
            if renumber:
                self.reorderer.renumber_manual(manual_id)
            self.session.commit()

        except DOMAIN_ERRORS:
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to delete section: {str(e)}", e) from e

        details["deleted_section_ids"] = result.deleted_section_ids
        details["counts"] = result.counts
        self._audit(section_id, "DELETE", details, AuditSeverity.HIGH)
        return result
