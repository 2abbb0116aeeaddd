"""Section tree operations."""

from dataclasses import dataclass, field
from typing import Optional

from manualtree.exceptions import TreeCorruptionError
from manualtree.models.section import Section
from manualtree.storage.repositories import SectionRepository


@dataclass
class SectionTreeNode:
    """A section with its children, assembled in memory from the flat list."""

    section: Section
    children: list["SectionTreeNode"] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.section.id

    def walk(self):
        """Yield this node and all descendants, depth first."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))


class SectionTreeBuilder:
    """Builds and inspects section tree structures."""

    def __init__(self, section_repo: SectionRepository):
        """
        Initialize tree builder with repository.

        Args:
            section_repo: Section repository for data access
        """
        self.section_repo = section_repo

    def build_hierarchy(
        self, manual_id: str, include_policies: bool = True
    ) -> list[SectionTreeNode]:
        """
        Assemble the nested forest of a manual from its flat section list.

        Args:
            manual_id: Manual ID
            include_policies: If True, eagerly load each section's policies

        Returns:
            Root nodes in sibling order, each with children in sibling order
        """
        sections = self.section_repo.get_by_manual_id(
            manual_id, include_policies=include_policies
        )
        return self.assemble(sections)

    @staticmethod
    def assemble(sections: list[Section]) -> list[SectionTreeNode]:
        """Link sections into a forest keyed by id. Sections whose parent is absent are treated as roots."""
        nodes = {section.id: SectionTreeNode(section) for section in sections}
        roots: list[SectionTreeNode] = []
        for section in sorted(sections, key=lambda s: (s.order_index, s.id)):
            node = nodes[section.id]
            parent = nodes.get(section.parent_section_id) if section.parent_section_id else None
            if parent is None:
                roots.append(node)
            else:
                parent.children.append(node)
        return roots

    def get_ancestor_ids(self, section_id: str) -> list[str]:
        """
        Walk from a section up to its root.

        Returns:
            Ids from the section's parent up to the root

        Raises:
            TreeCorruptionError: If the parent chain loops
        """
        ancestors: list[str] = []
        seen = {section_id}
        current: Optional[Section] = self.section_repo.get_by_id(section_id)
        while current is not None and current.parent_section_id:
            parent_id = current.parent_section_id
            if parent_id in seen:
                raise TreeCorruptionError(
                    f"Parent chain of section '{section_id}' contains a cycle",
                    ancestors + [parent_id],
                )
            seen.add(parent_id)
            ancestors.append(parent_id)
            current = self.section_repo.get_by_id(parent_id)
        return ancestors

    def would_create_cycle(self, section_id: str, new_parent_id: str | None) -> bool:
        """
        Check if moving section under new_parent would create a cycle.

        The new parent's ancestor chain is walked up to the root; finding the
        moved section on it means the target is inside the moved subtree.

        Args:
            section_id: Section ID to move
            new_parent_id: Potential new parent ID

        Returns:
            True if cycle would be created, False otherwise
        """
        # If moving to None (top-level), no cycle possible
        if new_parent_id is None:
            return False

        if section_id == new_parent_id:
            return True

        return section_id in self.get_ancestor_ids(new_parent_id)

    def subtree_height(self, section_id: str) -> int:
        """Number of levels below a section (0 for a leaf)."""
        height = 0
        frontier = [section_id]
        visited = {section_id}
        while True:
            next_frontier: list[str] = []
            for current in frontier:
                for child_id in self.section_repo.get_child_ids(current):
                    if child_id in visited:
                        raise TreeCorruptionError(
                            f"Section '{child_id}' reached twice below '{section_id}'",
                            [child_id],
                        )
                    visited.add(child_id)
                    next_frontier.append(child_id)
            if not next_frontier:
                return height
            height += 1
            frontier = next_frontier
