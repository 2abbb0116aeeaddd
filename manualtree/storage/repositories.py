"""Repository pattern implementation for data access layer."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.orm import Session, selectinload

from manualtree.exceptions import TreeCorruptionError
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


class ManualRepository:
    """Repository for manual operations."""

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    def create(self, manual: Manual) -> Manual:
        """Create a new manual."""
        self.session.add(manual)
        self.session.flush()
        return manual

    def get_by_id(self, manual_id: str) -> Optional[Manual]:
        """Get manual by ID."""
        return self.session.get(Manual, manual_id)

    def get_for_update(self, manual_id: str, lock: bool = False) -> Optional[Manual]:
        """Get manual by ID, optionally taking a row lock for the rest of the transaction."""
        stmt = select(Manual).where(Manual.id == manual_id)
        if lock:
            stmt = stmt.with_for_update()
        return self.session.scalar(stmt.execution_options(populate_existing=True))

    def bump_tree_version(self, manual_id: str, seen_version: int) -> bool:
        """
        Advance the manual's tree version if nobody else has since ``seen_version``.

        Returns:
            True if the version was advanced, False if it had already moved on
        """
        stmt = (
            update(Manual)
            .where(and_(Manual.id == manual_id, Manual.tree_version == seen_version))
            .values(tree_version=seen_version + 1)
            .execution_options(synchronize_session="evaluate")
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def list(self, limit: int = 100, offset: int = 0) -> list[Manual]:
        """List manuals, newest first."""
        stmt = (
            select(Manual)
            .order_by(Manual.created_at.desc(), Manual.id)
            .limit(limit)
            .offset(offset)
        )
        return list(self.session.scalars(stmt))

    def count(self) -> int:
        """Count manuals."""
        return self.session.scalar(select(func.count(Manual.id))) or 0

    def update(self, manual: Manual) -> Manual:
        """Update an existing manual."""
        self.session.flush()
        return manual

    def delete(self, manual_id: str) -> bool:
        """Delete a manual row. Its sections must already be gone."""
        result = self.session.execute(
            delete(Manual)
            .where(Manual.id == manual_id)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0


class SectionRepository:
    """Repository for section operations with hierarchical query support."""

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    def create(self, section: Section) -> Section:
        """Create a new section."""
        self.session.add(section)
        self.session.flush()
        return section

    def get_by_id(self, section_id: str) -> Optional[Section]:
        """Get section by ID."""
        return self.session.get(Section, section_id)

    def get_by_manual_id(
        self, manual_id: str, include_policies: bool = False
    ) -> list[Section]:
        """
        Get all sections of a manual as a flat list ordered by (level, order_index).

        Args:
            manual_id: Manual ID
            include_policies: If True, eagerly load each section's policies

        Returns:
            List of sections
        """
        stmt = (
            select(Section)
            .where(Section.manual_id == manual_id)
            .order_by(Section.level, Section.order_index, Section.id)
        )
        if include_policies:
            stmt = stmt.options(selectinload(Section.policies))
        return list(self.session.scalars(stmt))

    def get_siblings(self, manual_id: str, parent_section_id: Optional[str]) -> list[Section]:
        """Get the sections sharing a parent (or all roots) in sibling order."""
        if parent_section_id is None:
            parent_clause = Section.parent_section_id.is_(None)
        else:
            parent_clause = Section.parent_section_id == parent_section_id
        stmt = (
            select(Section)
            .where(and_(Section.manual_id == manual_id, parent_clause))
            .order_by(Section.order_index, Section.id)
        )
        return list(self.session.scalars(stmt))

    def get_child_ids(self, parent_section_id: str) -> list[str]:
        """Get ids of the direct children of a section."""
        stmt = (
            select(Section.id)
            .where(Section.parent_section_id == parent_section_id)
            .order_by(Section.order_index, Section.id)
        )
        return list(self.session.scalars(stmt))

    def get_path_to_root(self, section_id: str) -> list[Section]:
        """
        Get the path from a section to the root (manual level).

        Returns sections in order from root to the specified section.
        Raises TreeCorruptionError if the parent chain loops.
        """
        path: list[Section] = []
        seen: set[str] = set()
        current = self.get_by_id(section_id)
        while current:
            if current.id in seen:
                raise TreeCorruptionError(
                    f"Parent chain of section '{section_id}' contains a cycle",
                    [s.id for s in path],
                )
            seen.add(current.id)
            path.insert(0, current)
            if current.parent_section_id:
                current = self.get_by_id(current.parent_section_id)
            else:
                break
        return path

    def get_subtree_ids(self, section_id: str) -> list[str]:
        """
        Get a section and all of its descendants, parents before children.

        Raises TreeCorruptionError if a section is reached twice.
        """
        ordered: list[str] = []
        visited: set[str] = set()
        stack = [section_id]
        while stack:
            current = stack.pop()
            if current in visited:
                raise TreeCorruptionError(
                    f"Section '{current}' reached twice below '{section_id}'", [current]
                )
            visited.add(current)
            ordered.append(current)
            stack.extend(reversed(self.get_child_ids(current)))
        return ordered

    def update(self, section: Section) -> Section:
        """Update an existing section."""
        self.session.flush()
        return section

    def count(self, manual_id: Optional[str] = None) -> int:
        """Count sections, optionally within one manual."""
        query = select(func.count(Section.id))
        if manual_id:
            query = query.where(Section.manual_id == manual_id)
        return self.session.scalar(query) or 0

    def delete(self, section_id: str) -> bool:
        """Delete a single section row. Children and policies must already be gone."""
        result = self.session.execute(
            delete(Section)
            .where(Section.id == section_id)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount > 0


class PolicyRepository:
    """Repository for policies and the records that depend on them."""

    # Removal order for records keyed on policy_version_id
    VERSION_DEPENDENTS: tuple[tuple[str, Any], ...] = (
        ("approval_workflows", ApprovalWorkflow),
        ("document_signatures", DocumentSignature),
        ("annotations", Annotation),
        ("acknowledgements", Acknowledgement),
    )

    def __init__(self, session: Session):
        """Initialize repository with a database session."""
        self.session = session

    def create(self, policy: Policy) -> Policy:
        """Create a new policy."""
        self.session.add(policy)
        self.session.flush()
        return policy

    def create_version(self, version: PolicyVersion) -> PolicyVersion:
        """Create a new policy version."""
        self.session.add(version)
        self.session.flush()
        return version

    def get_by_id(self, policy_id: str) -> Optional[Policy]:
        """Get policy by ID."""
        return self.session.get(Policy, policy_id)

    def get_by_section_id(self, section_id: str) -> list[Policy]:
        """Get the policies of a section in display order."""
        stmt = (
            select(Policy)
            .where(Policy.section_id == section_id)
            .order_by(Policy.order_index, Policy.id)
        )
        return list(self.session.scalars(stmt))

    def get_by_section_id_chronological(self, section_id: str) -> list[Policy]:
        """Get the policies of a section in creation order."""
        stmt = (
            select(Policy)
            .where(Policy.section_id == section_id)
            .order_by(Policy.created_at, Policy.id)
        )
        return list(self.session.scalars(stmt))

    def get_ids_by_section_id(self, section_id: str) -> list[str]:
        """Get ids of the policies of a section."""
        stmt = select(Policy.id).where(Policy.section_id == section_id)
        return list(self.session.scalars(stmt))

    def next_order_index(self, section_id: str) -> int:
        """Get the first free policy slot in a section."""
        current = self.session.scalar(
            select(func.max(Policy.order_index)).where(Policy.section_id == section_id)
        )
        return 0 if current is None else current + 1

    def delete_dependents(self, policy_id: str) -> dict[str, int]:
        """
        Delete every record that depends on a policy, leaving the policy row.

        Runs inside the caller's transaction. Records are removed in
        foreign-key order: approval workflows, document signatures,
        annotations, acknowledgements, then the policy versions themselves.

        Args:
            policy_id: Policy ID

        Returns:
            Number of deleted rows per table
        """
        counts = {name: 0 for name, _ in self.VERSION_DEPENDENTS}
        counts["policy_versions"] = 0

        version_ids = list(
            self.session.scalars(
                select(PolicyVersion.id).where(PolicyVersion.policy_id == policy_id)
            )
        )
        if version_ids:
            for name, model in self.VERSION_DEPENDENTS:
                result = self.session.execute(
                    delete(model)
                    .where(model.policy_version_id.in_(version_ids))
                    .execution_options(synchronize_session="evaluate")
                )
                counts[name] += result.rowcount
            result = self.session.execute(
                delete(PolicyVersion)
                .where(PolicyVersion.policy_id == policy_id)
                .execution_options(synchronize_session="evaluate")
            )
            counts["policy_versions"] += result.rowcount
        return counts

    def delete(self, policy_id: str) -> dict[str, int]:
        """
        Delete a policy together with all of its dependent records.

        Returns:
            Number of deleted rows per table, including ``policies``
        """
        counts = self.delete_dependents(policy_id)
        result = self.session.execute(
            delete(Policy)
            .where(Policy.id == policy_id)
            .execution_options(synchronize_session="evaluate")
        )
        counts["policies"] = result.rowcount
        return counts
