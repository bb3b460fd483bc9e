"""
Items inside a section.
"""
from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from webcms.models.base import Base, BaseModel, OrderedNodeMixin


class SectionItem(Base, BaseModel, OrderedNodeMixin):
    """Item of a section. ``website_id`` is a cache of the section's website."""

    __tablename__ = "section_items"
    __table_args__ = (
        UniqueConstraint("section_id", "order", name="uq_section_items_section_order"),
        Index("idx_section_items_section_order", "section_id", "order"),
    )

    section_id = Column(
        UUID(as_uuid=True),
        ForeignKey("sections.id"),
        nullable=False,
        index=True,
    )
    website_id = Column(
        UUID(as_uuid=True),
        ForeignKey("websites.id"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, default="")
    image = Column(String(1024), nullable=True)
    is_main = Column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<SectionItem {self.name} #{self.order}>"
