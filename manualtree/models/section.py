"""Section model for storing hierarchical manual sections."""

from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from manualtree.models.base import Base, TimestampMixin


class Section(Base, TimestampMixin):
    """Section model representing a numbered node in a manual outline.

    ``level`` and ``section_number`` are derived from the parent chain and
    sibling order; only the tree services write them.
    """

    __tablename__ = "sections"
    __table_args__ = (
        Index("ix_sections_manual_level", "manual_id", "level"),
        Index("ix_sections_sibling_order", "manual_id", "parent_section_id", "order_index"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    manual_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("manuals.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_section_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        ForeignKey("sections.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    section_number: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    order_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_collapsed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Relationships
    manual: Mapped["Manual"] = relationship("Manual", back_populates="sections")
    policies: Mapped[list["Policy"]] = relationship(
        "Policy",
        back_populates="section",
        order_by="Policy.order_index",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Section(id={self.id!r}, number={self.section_number!r}, "
            f"title={self.title!r}, manual_id={self.manual_id!r})>"
        )
