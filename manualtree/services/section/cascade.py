"""Cascading removal of a section subtree and everything its policies own."""

import logging
from dataclasses import dataclass, field

from manualtree.storage.repositories import PolicyRepository, SectionRepository

logger = logging.getLogger(__name__)


@dataclass
class CascadeDeleteResult:
    """What a cascade delete removed."""

    section_id: str
    deleted_section_ids: list[str] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)

    def add_counts(self, counts: dict[str, int]) -> None:
        for table, count in counts.items():
            self.counts[table] = self.counts.get(table, 0) + count

    def to_dict(self) -> dict:
        return {
            "section_id": self.section_id,
            "deleted_section_ids": list(self.deleted_section_ids),
            "counts": dict(self.counts),
        }


class CascadeDeleter:
    """Removes sections bottom-up together with their policies' dependent closure.

    The only component allowed to delete section rows. Runs inside the
    caller's transaction and never commits.
    """

    def __init__(self, section_repo: SectionRepository, policy_repo: PolicyRepository):
        self.section_repo = section_repo
        self.policy_repo = policy_repo

    def delete_subtree(self, section_id: str) -> CascadeDeleteResult:
        """
        Delete a section, its descendants and every record owned by their policies.

        Descendants are removed before their parents, and within a section
        every policy (with its dependents) before the section row.

        Args:
            section_id: Root of the subtree to remove

        Returns:
            Removed section ids (children first) and per-table row counts
        """
        result = CascadeDeleteResult(section_id=section_id)
        result.counts = {
            "sections": 0,
            "policies": 0,
            "policy_versions": 0,
            "acknowledgements": 0,
            "annotations": 0,
            "approval_workflows": 0,
            "document_signatures": 0,
        }

        # Parents come before children in the walk; reversed, every
        # descendant is handled before its ancestors
        for current_id in reversed(self.section_repo.get_subtree_ids(section_id)):
            for policy_id in self.policy_repo.get_ids_by_section_id(current_id):
                result.add_counts(self.policy_repo.delete(policy_id))
            if self.section_repo.delete(current_id):
                result.counts["sections"] += 1
                result.deleted_section_ids.append(current_id)

        logger.info(
            "Cascade deleted section %s: %d sections, %d policies",
            section_id,
            result.counts["sections"],
            result.counts["policies"],
        )
        return result
