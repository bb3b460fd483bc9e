"""
Nested content tree schemas returned by the tree assembler.
"""
from uuid import UUID

from pydantic import Field

from webcms.models.content import ElementType
from webcms.models.node import NodeKind
from webcms.schemas.common import IDSchema, TimestampSchema


class ContentElementNode(IDSchema, TimestampSchema):
    """Content element; ``value`` holds the requested language's content."""

    parent_kind: NodeKind
    parent_id: UUID
    name: str
    type: ElementType
    default_content: str | None = None
    image_url: str | None = None
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    file_mime_type: str | None = None
    is_active: bool
    order: int
    metadata: dict | None = Field(default=None, validation_alias="metadata_")
    value: str | None = None


class SubSectionNode(IDSchema, TimestampSchema):
    section_item_id: UUID
    section_id: UUID
    website_id: UUID
    name: str
    description: str | None = None
    slug: str
    is_active: bool
    is_main: bool
    order: int
    metadata: dict | None = Field(default=None, validation_alias="metadata_")
    elements: list[ContentElementNode] = []


class SectionItemNode(IDSchema, TimestampSchema):
    section_id: UUID
    website_id: UUID
    name: str
    description: str | None = None
    image: str | None = None
    is_active: bool
    is_main: bool
    order: int
    subsections: list[SubSectionNode] = []
    elements: list[ContentElementNode] = []


class SectionNode(IDSchema, TimestampSchema):
    website_id: UUID
    name: dict
    sub_name: str
    description: dict | None = None
    image: str | None = None
    is_active: bool
    order: int
    section_items: list[SectionItemNode] = []
    elements: list[ContentElementNode] = []


class WebsiteNode(IDSchema, TimestampSchema):
    name: str
    description: str | None = None
    phone_number: str | None = None
    address: str | None = None
    email: str | None = None
    sector: str | None = None
    logo: str | None = None
    metadata: dict | None = Field(default=None, validation_alias="metadata_")
    sections: list[SectionNode] = []
    elements: list[ContentElementNode] = []


TreeNode = WebsiteNode | SectionNode | SectionItemNode | SubSectionNode
