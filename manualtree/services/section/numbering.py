"""Dotted section numbering.

Root sections are numbered ``"1.0"``, ``"2.0"``, ... in sibling order. A child
takes its parent's number without the trailing ``".0"`` and appends its own
1-based rank among its siblings, so the children of ``"2.0"`` are ``"2.1"``,
``"2.2"`` and the children of ``"2.1"`` are ``"2.1.1"``, ``"2.1.2"``.

Everything here is pure: the functions take lightweight snapshots of the tree
and never touch the database.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from manualtree.exceptions import TreeCorruptionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SectionNode:
    """Shape-only view of a section: enough to number it."""

    id: str
    parent_section_id: Optional[str]
    order_index: int

    @classmethod
    def from_section(cls, section) -> "SectionNode":
        """Build a node from anything with id/parent_section_id/order_index attributes."""
        return cls(section.id, section.parent_section_id, section.order_index)


@dataclass(frozen=True)
class SectionPosition:
    """Derived placement of a section in the tree."""

    section_number: str
    level: int
    order_index: int


def base_number(section_number: str) -> str:
    """Strip a trailing ``".0"`` so children can extend the number."""
    if section_number.endswith(".0"):
        return section_number[:-2]
    return section_number


def format_number(parent_number: Optional[str], rank: int) -> str:
    """Number for the ``rank``-th (1-based) child of ``parent_number``, or a root."""
    if parent_number is None:
        return f"{rank}.0"
    return f"{base_number(parent_number)}.{rank}"


def number_for_new_section(
    parent_number: Optional[str], siblings: Sequence[object]
) -> str:
    """
    Number a section about to be appended after ``siblings``.

    Args:
        parent_number: Number of the target parent, None for a root section
        siblings: Sections already under that parent

    Returns:
        The number the new section receives
    """
    return format_number(parent_number, len(siblings) + 1)


def compute_layout(nodes: Iterable[SectionNode]) -> dict[str, SectionPosition]:
    """
    Derive number, level and compacted sibling index for every section of a manual.

    Siblings are ranked by ``order_index``; equal values keep input order.
    Runs in O(n log n) for the sibling sorts and O(n) for the walk itself.

    Args:
        nodes: Every section of one manual

    Returns:
        Mapping of section id to its derived position

    Raises:
        TreeCorruptionError: If ids repeat or some sections cannot be reached
            from a root (parent cycle or parent outside the snapshot)
    """
    node_list = list(nodes)
    known: set[str] = set()
    duplicates: list[str] = []
    for node in node_list:
        if node.id in known:
            duplicates.append(node.id)
        known.add(node.id)
    if duplicates:
        raise TreeCorruptionError("Duplicate section ids in tree snapshot", duplicates)

    children: dict[Optional[str], list[SectionNode]] = {}
    for node in node_list:
        children.setdefault(node.parent_section_id, []).append(node)
    for siblings in children.values():
        siblings.sort(key=lambda n: n.order_index)

    layout: dict[str, SectionPosition] = {}
    # (parent number, depth, siblings) frames; explicit stack keeps deep trees off the call stack
    stack: list[tuple[Optional[str], int, list[SectionNode]]] = [
        (None, 0, children.get(None, []))
    ]
    while stack:
        parent_number, depth, siblings = stack.pop()
        for rank, node in enumerate(siblings):
            if node.id in layout:
                raise TreeCorruptionError(
                    f"Section '{node.id}' visited twice while numbering", [node.id]
                )
            number = format_number(parent_number, rank + 1)
            layout[node.id] = SectionPosition(number, depth, rank)
            if node.id in children:
                stack.append((number, depth + 1, children[node.id]))

    if len(layout) != len(node_list):
        stranded = sorted(n.id for n in node_list if n.id not in layout)
        logger.error("Sections unreachable from any root: %s", stranded)
        raise TreeCorruptionError(
            "Sections are not reachable from a root section (cycle or missing parent)",
            stranded,
        )
    return layout


def compute_section_numbers(nodes: Iterable[SectionNode]) -> dict[str, str]:
    """Map every section id of a manual to its canonical dotted number."""
    return {
        section_id: position.section_number
        for section_id, position in compute_layout(nodes).items()
    }
