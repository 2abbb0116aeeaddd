"""Policy models: the content owned by sections and the records that hang off it."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from manualtree.models.base import Base, TimestampMixin


class Policy(Base, TimestampMixin):
    """Policy owned by a section. Ordered within its section, not numbered."""

    __tablename__ = "policies"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    section_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("sections.id", ondelete="CASCADE"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Points at policy_versions.id; left without a foreign key so versions can be
    # removed before the policy row
    current_version_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_by_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    section: Mapped["Section"] = relationship("Section", back_populates="policies")
    versions: Mapped[list["PolicyVersion"]] = relationship(
        "PolicyVersion",
        back_populates="policy",
        order_by="PolicyVersion.version_number",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Policy(id={self.id!r}, title={self.title!r}, section_id={self.section_id!r})>"


class PolicyVersion(Base):
    """Immutable revision of a policy body."""

    __tablename__ = "policy_versions"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    policy_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("policies.id", ondelete="CASCADE"), nullable=False, index=True
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    body_content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    effective_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    author_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    change_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    policy: Mapped["Policy"] = relationship("Policy", back_populates="versions")

    def __repr__(self) -> str:
        return f"<PolicyVersion(id={self.id!r}, policy_id={self.policy_id!r}, version={self.version_number})>"


class Acknowledgement(Base):
    """A user's acknowledgement of a policy version."""

    __tablename__ = "acknowledgements"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    policy_version_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("policy_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    acknowledged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )


class Annotation(Base, TimestampMixin):
    """Reader comment attached to a policy version."""

    __tablename__ = "annotations"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    policy_version_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("policy_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)


class ApprovalWorkflow(Base, TimestampMixin):
    """Approval request for publishing a policy version."""

    __tablename__ = "approval_workflows"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    policy_version_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("policy_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    requested_by_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    approver_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class DocumentSignature(Base):
    """Signature over the content hash of a policy version."""

    __tablename__ = "document_signatures"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    policy_version_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("policy_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    signer_id: Mapped[str] = mapped_column(String(255), nullable=False)
    signature_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    signed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
