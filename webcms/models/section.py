"""
Top level sections of a website.
"""
from sqlalchemy import Column, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID

from webcms.models.base import Base, BaseModel, OrderedNodeMixin


class Section(Base, BaseModel, OrderedNodeMixin):
    """Section of a website; name and description are keyed by language code."""

    __tablename__ = "sections"
    __table_args__ = (
        UniqueConstraint("website_id", "order", name="uq_sections_website_order"),
        Index("idx_sections_website_order", "website_id", "order"),
    )

    website_id = Column(
        UUID(as_uuid=True),
        ForeignKey("websites.id"),
        nullable=False,
        index=True,
    )
    name = Column(JSONB, nullable=False, default=dict)
    sub_name = Column(String(255), nullable=False)
    description = Column(JSONB, default=dict)
    image = Column(String(1024), nullable=True)

    def __repr__(self) -> str:
        return f"<Section {self.sub_name} #{self.order}>"
