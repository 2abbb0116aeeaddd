"""Per-manual tree version guard for structural writes."""

import logging
from typing import Optional

from manualtree.exceptions import ConflictError, NotFoundError
from manualtree.models.manual import Manual
from manualtree.storage.repositories import ManualRepository

logger = logging.getLogger(__name__)


class TreeVersionGuard:
    """Serializes structural writes to one manual's section tree.

    Every structural write claims the manual first: the manual row is locked
    where the backend supports it, the caller's expected version (if any) is
    checked, and the version is advanced with a compare-and-set so a writer
    that raced past the check still fails instead of overwriting.
    """

    def __init__(self, manual_repo: ManualRepository, lock_rows: bool = False):
        self.manual_repo = manual_repo
        self.lock_rows = lock_rows

    def claim(self, manual_id: str, expected_version: Optional[int] = None) -> Manual:
        """
        Claim the manual's tree for the current transaction.

        Args:
            manual_id: Manual ID
            expected_version: Tree version the caller last saw, if it cares

        Returns:
            The manual, with ``tree_version`` already advanced

        Raises:
            NotFoundError: If the manual does not exist
            ConflictError: If the tree changed since ``expected_version`` or
                concurrently with this claim
        """
        manual = self.manual_repo.get_for_update(manual_id, lock=self.lock_rows)
        if manual is None:
            raise NotFoundError("Manual", manual_id)

        seen = manual.tree_version
        if expected_version is not None and expected_version != seen:
            raise ConflictError(manual_id, expected_version, seen)

        if not self.manual_repo.bump_tree_version(manual_id, seen):
            logger.warning("Lost tree version race on manual %s at version %s", manual_id, seen)
            raise ConflictError(manual_id, seen)
        return manual
