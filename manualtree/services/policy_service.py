"""Policy service: placement of policies inside sections and their removal."""

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from manualtree.exceptions import DatabaseError, DuplicateError, NotFoundError, ValidationError
from manualtree.models.policy import Policy, PolicyVersion
from manualtree.services.audit import (
    AuditSeverity,
    AuditSink,
    default_audit_sink,
    emit_audit_event,
)
from manualtree.services.section.validation import SectionValidator
from manualtree.storage.repositories import PolicyRepository, SectionRepository

logger = logging.getLogger(__name__)


class PolicyService:
    """Creates, orders and removes the policies owned by sections.

    Policy bodies are opaque here; only the first version is created so a
    new policy has something for ``current_version_id`` to point at.
    """

    STATUSES = ("DRAFT", "LIVE")

    def __init__(
        self,
        session: Session,
        audit_sink: AuditSink | None = None,
        actor_id: str | None = None,
    ):
        self.session = session
        self.audit_sink = audit_sink or default_audit_sink()
        self.actor_id = actor_id
        self.section_repo = SectionRepository(session)
        self.policy_repo = PolicyRepository(session)
        self.validator = SectionValidator()

    def _require_section(self, section_id: str) -> None:
        self.validator.validate_id(section_id, "section_id")
        if self.section_repo.get_by_id(section_id) is None:
            raise NotFoundError("Section", section_id)

    def create_policy(
        self,
        section_id: str,
        title: str,
        body_content: str = "",
        status: str = "DRAFT",
        effective_date: datetime | None = None,
        policy_id: str | None = None,
        created_by_id: str | None = None,
    ) -> Policy:
        """
        Create a policy at the end of a section, together with its first version.

        Raises:
            ValidationError: If title, status or IDs are invalid
            NotFoundError: If section is not found
            DuplicateError: If policy with same ID already exists
            DatabaseError: If database operation fails
        """
        self.validator.validate_title(title)
        if not isinstance(body_content, str):
            raise ValidationError("Body content must be a string", "body_content")
        if status not in self.STATUSES:
            raise ValidationError(f"Status must be one of {', '.join(self.STATUSES)}", "status")
        self._require_section(section_id)

        if policy_id is None:
            policy_id = str(uuid.uuid4())
        else:
            self.validator.validate_id(policy_id, "policy_id")
        if self.policy_repo.get_by_id(policy_id) is not None:
            raise DuplicateError("Policy", "id", policy_id)

        author = created_by_id or self.actor_id
        try:
            policy = Policy(
                id=policy_id,
                section_id=section_id,
                title=title,
                status=status,
                order_index=self.policy_repo.next_order_index(section_id),
                created_by_id=author,
            )
            self.policy_repo.create(policy)
            version = PolicyVersion(
                id=str(uuid.uuid4()),
                policy_id=policy_id,
                version_number=1,
                body_content=body_content,
                effective_date=effective_date or datetime.now(timezone.utc),
                author_id=author,
            )
            self.policy_repo.create_version(version)
            policy.current_version_id = version.id
            self.session.commit()
            return policy

        except (DuplicateError, NotFoundError, ValidationError):
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to create policy: {str(e)}", e) from e

    def get_policies(self, section_id: str) -> list[Policy]:
        """Get the policies of a section in display order."""
        self._require_section(section_id)
        return self.policy_repo.get_by_section_id(section_id)

    def reorder_policies(self, section_id: str, policy_order: list[str]) -> list[Policy]:
        """
        Put a section's policies in the given order.

        Policies of the section left out of ``policy_order`` follow the listed
        ones, keeping their relative order.

        Raises:
            ValidationError: If policy_order is malformed or names a policy of
                another section
            NotFoundError: If section is not found
            DatabaseError: If database operation fails
        """
        if not isinstance(policy_order, list) or not policy_order:
            raise ValidationError("policy_order must be a non-empty list", "policy_order")
        if len(policy_order) != len(set(policy_order)):
            raise ValidationError("policy_order contains duplicates", "policy_order")
        self._require_section(section_id)

        try:
            policies = self.policy_repo.get_by_section_id(section_id)
            by_id = {p.id: p for p in policies}
            strays = [pid for pid in policy_order if pid not in by_id]
            if strays:
                raise ValidationError(
                    f"Policies do not belong to section {section_id}: {', '.join(strays)}",
                    "policy_order",
                )
            listed = set(policy_order)
            ordered = [by_id[pid] for pid in policy_order]
            ordered += [p for p in policies if p.id not in listed]
            for position, policy in enumerate(ordered):
                policy.order_index = position
            self.session.commit()
            return ordered

        except (NotFoundError, ValidationError):
            self.session.rollback()
            raise
        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to reorder policies: {str(e)}", e) from e

    def fix_order_indices(self, section_id: str) -> list[Policy]:
        """
        Repair policy order in a section: contiguous indexes by creation time, then id.

        Raises:
            NotFoundError: If section is not found
            DatabaseError: If database operation fails
        """
        self._require_section(section_id)

        try:
            policies = self.policy_repo.get_by_section_id_chronological(section_id)
            for position, policy in enumerate(policies):
                policy.order_index = position
            self.session.commit()
            logger.info("Fixed order of %d policies in section %s", len(policies), section_id)
            return policies

        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to fix policy order: {str(e)}", e) from e

    def delete_policy(self, policy_id: str) -> dict[str, int]:
        """
        Delete a policy with its versions, acknowledgements, annotations,
        approval workflows and signatures.

        Returns:
            Number of deleted rows per table

        Raises:
            ValidationError: If policy_id is invalid
            NotFoundError: If policy is not found
            DatabaseError: If database operation fails
        """
        self.validator.validate_id(policy_id, "policy_id")
        policy = self.policy_repo.get_by_id(policy_id)
        if policy is None:
            raise NotFoundError("Policy", policy_id)
        details = {"section_id": policy.section_id, "title": policy.title}

        try:
            counts = self.policy_repo.delete(policy_id)
            self.session.commit()

        except Exception as e:
            self.session.rollback()
            raise DatabaseError(f"Failed to delete policy: {str(e)}", e) from e

        details["counts"] = counts
        emit_audit_event(
            self.audit_sink, self.actor_id, "policy", policy_id, "DELETE", details, AuditSeverity.HIGH
        )
        return counts
