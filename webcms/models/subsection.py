"""
Subsections of a section item.
"""
from sqlalchemy import Boolean, Column, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID

from webcms.models.base import Base, BaseModel, OrderedNodeMixin


class SubSection(Base, BaseModel, OrderedNodeMixin):
    """Subsection of a section item.

    ``section_id`` and ``website_id`` are derived from the section item and
    are recomputed whenever the subsection is reparented.
    """

    __tablename__ = "subsections"
    __table_args__ = (
        UniqueConstraint("section_item_id", "order", name="uq_subsections_item_order"),
        Index("idx_subsections_item_order", "section_item_id", "order"),
    )

    section_item_id = Column(
        UUID(as_uuid=True),
        ForeignKey("section_items.id"),
        nullable=False,
        index=True,
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
    description = Column(Text, nullable=True)
    slug = Column(String(255), nullable=False, unique=True)
    is_main = Column(Boolean, nullable=False, default=False)
    metadata_ = Column("metadata", JSONB, default=dict)

    def __repr__(self) -> str:
        return f"<SubSection {self.slug} #{self.order}>"
