"""
Content elements and their per-language translations.
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID

from webcms.models.base import Base, BaseModel
from webcms.models.node import NodeKind, ParentRef


class ElementType(str, PyEnum):
    TEXT = "text"
    HEADING = "heading"
    ARRAY = "array"
    PARAGRAPH = "paragraph"
    FILE = "file"
    LIST = "list"
    IMAGE = "image"
    VIDEO = "video"
    LINK = "link"
    CUSTOM = "custom"
    BADGE = "badge"
    TEXTAREA = "textarea"
    BOOLEAN = "boolean"


class ContentElement(Base, BaseModel):
    """Leaf content unit attached to a tree node."""

    __tablename__ = "content_elements"
    __table_args__ = (
        Index("idx_content_elements_parent", "parent_kind", "parent_id"),
    )

    parent_kind = Column(
        Enum(NodeKind),
        nullable=False,
        default=NodeKind.SUBSECTION,
    )
    parent_id = Column(UUID(as_uuid=True), nullable=False)
    website_id = Column(
        UUID(as_uuid=True),
        ForeignKey("websites.id"),
        nullable=True,
        index=True,
    )
    name = Column(String(255), nullable=False, index=True)
    type = Column(Enum(ElementType), nullable=False, index=True)
    default_content = Column(Text, nullable=True)
    image_url = Column(String(1024), nullable=True)
    file_url = Column(String(1024), nullable=True)
    file_name = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    file_mime_type = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    order = Column(Integer, nullable=False, default=0)
    metadata_ = Column("metadata", JSONB, default=dict)

    @property
    def parent(self) -> ParentRef:
        return ParentRef(kind=self.parent_kind, id=self.parent_id)

    def __repr__(self) -> str:
        return f"<ContentElement {self.name} ({self.type.value})>"


class ContentTranslation(Base, BaseModel):
    """Language specific payload of a content element."""

    __tablename__ = "content_translations"
    __table_args__ = (
        UniqueConstraint(
            "language_id",
            "content_element_id",
            name="uq_content_translations_language_element",
        ),
    )

    content_element_id = Column(
        UUID(as_uuid=True),
        ForeignKey("content_elements.id"),
        nullable=False,
        index=True,
    )
    language_id = Column(
        UUID(as_uuid=True),
        ForeignKey("languages.id"),
        nullable=False,
        index=True,
    )
    content = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    metadata_ = Column("metadata", JSONB, default=dict)

    def __repr__(self) -> str:
        return f"<ContentTranslation {self.content_element_id}/{self.language_id}>"
