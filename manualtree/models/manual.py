"""Manual model for storing the documents that own section trees."""

from typing import Optional

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from manualtree.models.base import Base, TimestampMixin


class Manual(Base, TimestampMixin):
    """Manual model representing a document with a numbered section outline."""

    __tablename__ = "manuals"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="DRAFT")
    # Bumped by every structural write to the section tree
    tree_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_by_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Relationships
    sections: Mapped[list["Section"]] = relationship(
        "Section", back_populates="manual", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Manual(id={self.id!r}, title={self.title!r})>"
