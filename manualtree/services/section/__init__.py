"""Section service module with validation, numbering, tree operations, reordering and cascade components."""

from manualtree.services.section.cascade import CascadeDeleter, CascadeDeleteResult
from manualtree.services.section.numbering import (
    SectionNode,
    SectionPosition,
    compute_layout,
    compute_section_numbers,
    number_for_new_section,
)
from manualtree.services.section.reordering import SectionReorderer
from manualtree.services.section.tree_operations import SectionTreeBuilder, SectionTreeNode
from manualtree.services.section.validation import (
    HierarchyNode,
    SectionPatch,
    SectionValidator,
)
from manualtree.services.section.versioning import TreeVersionGuard

__all__ = [
    "CascadeDeleter",
    "CascadeDeleteResult",
    "HierarchyNode",
    "SectionNode",
    "SectionPatch",
    "SectionPosition",
    "SectionReorderer",
    "SectionTreeBuilder",
    "SectionTreeNode",
    "SectionValidator",
    "TreeVersionGuard",
    "compute_layout",
    "compute_section_numbers",
    "number_for_new_section",
]
