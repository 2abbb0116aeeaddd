"""Manual service layer for business logic and validation."""

import logging
import uuid
from typing import Any

from sqlalchemy.orm import Session

from manualtree.exceptions import (
    ConflictError,
    DatabaseError,
    DuplicateError,
    NotFoundError,
    TreeCorruptionError,
    ValidationError,
)
from manualtree.models.manual import Manual
from manualtree.services.audit import (
    AuditSeverity,
    AuditSink,
    default_audit_sink,
    emit_audit_event,
)
from manualtree.services.section.cascade import CascadeDeleter
from manualtree.services.section.validation import SectionValidator
from manualtree.services.section.versioning import TreeVersionGuard
from manualtree.storage.repositories import (
    ManualRepository,
    PolicyRepository,
    SectionRepository,
)

logger = logging.getLogger(__name__)


class ManualService:
    """Service layer for manual CRUD operations with validation and error handling."""

    # Validation constants
    TITLE_MAX_LENGTH = 500
    ID_MAX_LENGTH = 255
    STATUSES = ("DRAFT", "LIVE")

    def __init__(
        self,
        session: Session,
        audit_sink: AuditSink | None = None,
        actor_id: str | None = None,
    ):
        """
        Initialize manual service with database session.

        Args:
            session: SQLAlchemy database session
            audit_sink: Receiver of post-commit audit events (default from settings)
            actor_id: User performing the operations
        """
        self.session = session
        self.audit_sink = audit_sink or default_audit_sink()
        self.actor_id = actor_id
        self.manual_repo = ManualRepository(session)
        self.section_repo = SectionRepository(session)
        self.deleter = CascadeDeleter(self.section_repo, PolicyRepository(session))
        self.guard = TreeVersionGuard(
            self.manual_repo, lock_rows=session.get_bind().dialect.name == "postgresql"
        )

    def create_manual(
        self,
        title: str,
        description: str | None = None,
        manual_id: str | None = None,
        created_by_id: str | None = None,
    ) -> Manual:
        """
        Create a new, empty manual.

        Args:
            title: Manual title (required, non-empty)
            description: Optional description
            manual_id: Optional manual ID. If not provided, generates a UUID.
            created_by_id: Optional creating user ID (defaults to the service actor)

        Returns:
            Created manual with ID

        Raises:
            ValidationError: If title or ID is invalid
            DuplicateError: If manual with same ID already exists
            DatabaseError: If database operation fails
        """
        self._validate_title(title)
        if description is not None and not isinstance(description, str):
            raise ValidationError("Description must be a string", "description")

        if manual_id is None:
            manual_id = str(uuid.uuid4())
        else:
            self._validate_id(manual_id)

        if self.manual_repo.get_by_id(manual_id) is not None:
            raise DuplicateError("Manual", "id", manual_id)

        try:
            manual = Manual(
                id=manual_id,
                title=title,
                description=description,
                status="DRAFT",
                tree_version=0,
                created_by_id=created_by_id or self.actor_id,
            )
            self.manual_repo.create(manual)
            self.session.commit()
            return manual

        except (DuplicateError, ValidationError):
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to create manual: {str(e)}", e) from e

    def get_manual(self, manual_id: str) -> Manual:
        """
        Get manual by ID.

        Raises:
            ValidationError: If manual_id is invalid
            NotFoundError: If manual is not found
            DatabaseError: If database operation fails
        """
        self._validate_id(manual_id)

        try:
            manual = self.manual_repo.get_by_id(manual_id)
            if manual is None:
                raise NotFoundError("Manual", manual_id)
            return manual

        except (NotFoundError, ValidationError):
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to get manual: {str(e)}", e) from e

    def update_manual(
        self,
        manual_id: str,
        title: str | None = None,
        description: str | None = None,
        status: str | None = None,
    ) -> Manual:
        """
        Update manual title, description and/or status.

        Raises:
            ValidationError: If manual_id, title or status is invalid
            NotFoundError: If manual is not found
            DatabaseError: If database operation fails
        """
        self._validate_id(manual_id)
        if title is not None:
            self._validate_title(title)
        if status is not None and status not in self.STATUSES:
            raise ValidationError(f"Status must be one of {', '.join(self.STATUSES)}", "status")

        try:
            manual = self.manual_repo.get_by_id(manual_id)
            if manual is None:
                raise NotFoundError("Manual", manual_id)

            if title is not None:
                manual.title = title
            if description is not None:
                manual.description = description
            if status is not None:
                manual.status = status

            self.manual_repo.update(manual)
            self.session.commit()
            return manual

        except (NotFoundError, ValidationError):
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to update manual: {str(e)}", e) from e

    def delete_manual(self, manual_id: str, expected_version: int | None = None) -> bool:
        """
        Delete a manual with every section tree and policy record it owns.

        Args:
            manual_id: Manual ID
            expected_version: Tree version the caller last saw (optional)

        Returns:
            True if manual was deleted, False if not found

        Raises:
            ValidationError: If manual_id or expected_version is invalid
            ConflictError: If the tree changed since expected_version
            TreeCorruptionError: If a section tree loops
            DatabaseError: If database operation fails
        """
        self._validate_id(manual_id)
        SectionValidator.validate_expected_version(expected_version)

        try:
            manual = self.manual_repo.get_by_id(manual_id)
            if manual is None:
                return False

            self.guard.claim(manual_id, expected_version)
            counts: dict[str, int] = {}
            for root in self.section_repo.get_siblings(manual_id, None):
                result = self.deleter.delete_subtree(root.id)
                for table, count in result.counts.items():
                    counts[table] = counts.get(table, 0) + count
            self.manual_repo.delete(manual_id)
            self.session.commit()

        except (ValidationError, ConflictError, NotFoundError, TreeCorruptionError):
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to delete manual: {str(e)}", e) from e

        logger.info("Deleted manual %s (%s)", manual_id, counts)
        emit_audit_event(
            self.audit_sink,
            self.actor_id,
            "manual",
            manual_id,
            "DELETE",
            {"counts": counts},
            AuditSeverity.HIGH,
        )
        return True

    def list_manuals(self, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        """
        List manuals with pagination.

        Returns:
            List of manual summaries with:
            - id: Manual ID
            - title: Manual title
            - status: DRAFT or LIVE
            - section_count: Number of sections
            - tree_version: Current section tree version
            - updated_at: Last update timestamp

        Raises:
            ValidationError: If limit or offset is invalid
            DatabaseError: If database operation fails
        """
        if limit < 0:
            raise ValidationError("limit must be non-negative", "limit")
        if offset < 0:
            raise ValidationError("offset must be non-negative", "offset")

        try:
            return [
                {
                    "id": manual.id,
                    "title": manual.title,
                    "status": manual.status,
                    "section_count": self.section_repo.count(manual.id),
                    "tree_version": manual.tree_version,
                    "updated_at": manual.updated_at,
                }
                for manual in self.manual_repo.list(limit=limit, offset=offset)
            ]

        except ValidationError:
            raise
        except Exception as e:
            raise DatabaseError(f"Failed to list manuals: {str(e)}", e) from e

    def _validate_title(self, title: str) -> None:
        """Validate manual title."""
        if not isinstance(title, str):
            raise ValidationError("Title must be a string", "title")
        if not title or not title.strip():
            raise ValidationError("Title is required and cannot be empty", "title")
        if len(title) > self.TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Title must be at most {self.TITLE_MAX_LENGTH} characters", "title"
            )

    def _validate_id(self, manual_id: str) -> None:
        """Validate manual ID."""
        if not isinstance(manual_id, str):
            raise ValidationError("Manual ID must be a string", "id")
        if not manual_id or not manual_id.strip():
            raise ValidationError("Manual ID cannot be empty", "id")
        if len(manual_id) > self.ID_MAX_LENGTH:
            raise ValidationError(
                f"Manual ID must be at most {self.ID_MAX_LENGTH} characters", "id"
            )
