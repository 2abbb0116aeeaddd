"""Section reordering, reparenting and renumbering operations.

None of the methods here commit: they run inside the caller's transaction so
that a move or a bulk reorder and the renumber pass that follows it succeed or
fail together.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from manualtree.exceptions import (
    InvalidMoveError,
    NotFoundError,
    TreeCorruptionError,
    ValidationError,
)
from manualtree.models.section import Section
from manualtree.services.section.numbering import SectionNode, compute_layout
from manualtree.services.section.tree_operations import SectionTreeBuilder
from manualtree.services.section.validation import HierarchyNode
from manualtree.storage.repositories import SectionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlannedPlacement:
    """Where a submitted hierarchy puts one section."""

    section_id: str
    parent_section_id: Optional[str]
    level: int
    order_index: int


def plan_hierarchy(forest: list[HierarchyNode], max_depth: int) -> list[PlannedPlacement]:
    """
    Flatten a submitted forest into placements, in submission order.

    Raises:
        ValidationError: If a section appears more than once
        InvalidMoveError: If a node sits deeper than ``max_depth``
    """
    placements: list[PlannedPlacement] = []
    seen: set[str] = set()
    stack: list[tuple[Optional[str], int, list[HierarchyNode]]] = [(None, 0, forest)]
    while stack:
        parent_id, depth, nodes = stack.pop()
        for position, node in enumerate(nodes):
            if node.id in seen:
                raise ValidationError(
                    f"Section '{node.id}' appears more than once in the hierarchy", "tree"
                )
            if depth > max_depth:
                raise InvalidMoveError(
                    f"Section '{node.id}' would be nested deeper than {max_depth} levels",
                    section_id=node.id,
                    target_id=parent_id,
                )
            seen.add(node.id)
            placements.append(PlannedPlacement(node.id, parent_id, depth, position))
            if node.children:
                stack.append((node.id, depth + 1, node.children))
    return placements


class SectionReorderer:
    """Handles section moves, bulk reorders and the renumber pass."""

    def __init__(
        self,
        session: Session,
        section_repo: SectionRepository,
        tree_builder: SectionTreeBuilder,
        max_depth: int,
    ):
        """
        Initialize reorderer with session and repository.

        Args:
            session: SQLAlchemy database session
            section_repo: Section repository for data access
            tree_builder: Tree inspection helper (cycle checks)
            max_depth: Deepest allowed level
        """
        self.session = session
        self.section_repo = section_repo
        self.tree_builder = tree_builder
        self.max_depth = max_depth

    def check_move(
        self, section: Section, new_parent_section_id: Optional[str]
    ) -> Optional[Section]:
        """
        Validate a move before anything is written.

        Returns:
            The new parent section, or None for a move to the top level

        Raises:
            NotFoundError: If the new parent does not exist
            InvalidMoveError: On self-parenting, a cycle, a cross-manual
                target or a move that nests too deep
        """
        if new_parent_section_id is None:
            new_level = 0
            new_parent = None
        else:
            if new_parent_section_id == section.id:
                raise InvalidMoveError(
                    "Cannot make a section its own parent",
                    section_id=section.id,
                    target_id=new_parent_section_id,
                )
            new_parent = self.section_repo.get_by_id(new_parent_section_id)
            if new_parent is None:
                raise NotFoundError("Section", new_parent_section_id)
            if new_parent.manual_id != section.manual_id:
                raise InvalidMoveError(
                    "Cannot move a section into a different manual",
                    section_id=section.id,
                    target_id=new_parent_section_id,
                )
            if self.tree_builder.would_create_cycle(section.id, new_parent_section_id):
                raise InvalidMoveError(
                    "Cannot nest a section under its own subsection",
                    section_id=section.id,
                    target_id=new_parent_section_id,
                )
            new_level = new_parent.level + 1

        deepest = new_level + self.tree_builder.subtree_height(section.id)
        if deepest > self.max_depth:
            raise InvalidMoveError(
                f"Move would nest sections deeper than {self.max_depth} levels",
                section_id=section.id,
                target_id=new_parent_section_id,
            )
        return new_parent

    def move_section(
        self,
        section: Section,
        new_parent: Optional[Section],
        new_order_index: int,
    ) -> list[Section]:
        """
        Place a section at ``new_order_index`` among the children of ``new_parent``.

        Destination siblings at or after the insertion point move down one
        slot; an index past the end appends. The whole manual is renumbered
        afterwards, which also closes the gap left at the old location.

        Returns:
            Every section of the manual after renumbering
        """
        new_parent_id = new_parent.id if new_parent is not None else None
        siblings = [
            s
            for s in self.section_repo.get_siblings(section.manual_id, new_parent_id)
            if s.id != section.id
        ]
        slot = min(new_order_index, len(siblings))
        siblings.insert(slot, section)
        for position, sibling in enumerate(siblings):
            sibling.order_index = position

        old_parent_id = section.parent_section_id
        section.parent_section_id = new_parent_id
        section.level = new_parent.level + 1 if new_parent is not None else 0

        sections = self.renumber_manual(section.manual_id)
        logger.info(
            "Moved section %s from parent %s to parent %s at index %s",
            section.id,
            old_parent_id,
            new_parent_id,
            slot,
        )
        return sections

    def apply_hierarchy(
        self,
        manual_id: str,
        placements: list[PlannedPlacement],
        sections_by_id: dict[str, Section],
    ) -> list[Section]:
        """
        Write parent, level and sibling index for every placed section, then renumber.

        Raises:
            InvalidMoveError: If the result does not form a tree (only possible
                when sections left out of the payload already loop)
        """
        for placement in placements:
            section = sections_by_id[placement.section_id]
            section.parent_section_id = placement.parent_section_id
            section.level = placement.level
            section.order_index = placement.order_index

        try:
            sections = self.renumber_manual(manual_id)
        except TreeCorruptionError as e:
            raise InvalidMoveError(
                f"Submitted hierarchy does not form a tree: {e}",
                section_id=e.section_ids[0] if e.section_ids else None,
            ) from e
        logger.info("Applied hierarchy of %d sections to manual %s", len(placements), manual_id)
        return sections

    def reorder_siblings(
        self,
        manual_id: str,
        parent_section_id: Optional[str],
        section_order: list[str],
    ) -> list[Section]:
        """
        Reorder the children of one parent (or the roots) to match ``section_order``.

        Raises:
            ValidationError: If ``section_order`` is not exactly the current siblings
        """
        siblings = self.section_repo.get_siblings(manual_id, parent_section_id)
        by_id = {s.id: s for s in siblings}
        if len(section_order) != len(set(section_order)):
            raise ValidationError("section_order contains duplicates", "section_order")
        if set(section_order) != set(by_id):
            strays = sorted(set(section_order) - set(by_id))
            missing = sorted(set(by_id) - set(section_order))
            raise ValidationError(
                f"section_order must list exactly the children of {parent_section_id or 'the manual root'}"
                f" (unexpected: {strays}, missing: {missing})",
                "section_order",
            )
        for position, section_id in enumerate(section_order):
            by_id[section_id].order_index = position
        return self.renumber_manual(manual_id)

    def renumber_manual(self, manual_id: str) -> list[Section]:
        """
        Re-derive level, compact sibling index and section number for a whole manual.

        Returns:
            Every section of the manual, ordered by (level, order_index)

        Raises:
            TreeCorruptionError: If stored parent links do not form a tree
        """
        self.session.flush()
        sections = self.section_repo.get_by_manual_id(manual_id)
        layout = compute_layout(SectionNode.from_section(s) for s in sections)

        changed = 0
        for section in sections:
            position = layout[section.id]
            if (
                section.section_number != position.section_number
                or section.level != position.level
                or section.order_index != position.order_index
            ):
                section.section_number = position.section_number
                section.level = position.level
                section.order_index = position.order_index
                changed += 1
        self.session.flush()
        logger.debug("Renumbered manual %s: %d of %d sections changed", manual_id, changed, len(sections))
        return sorted(sections, key=lambda s: (s.level, s.order_index, s.id))
