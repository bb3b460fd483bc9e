"""
Helpers shared by the tree services: id parsing, parent columns per level and
node lookups.
"""
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from webcms.core.exceptions import NotFoundError, ValidationError
from webcms.models import NODE_MODELS, NodeKind, Section, SectionItem, SubSection, Website

LABELS = {
    NodeKind.WEBSITE: "Website",
    NodeKind.SECTION: "Section",
    NodeKind.SECTION_ITEM: "Section item",
    NodeKind.SUBSECTION: "Subsection",
}


def parse_id(value: Any, label: str = "id") -> UUID:
    """Parse a UUID from a string or UUID, raising ValidationError when malformed."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise ValidationError(f"Invalid {label} format", details={"value": str(value)})


def parse_kind(value: Any) -> NodeKind:
    try:
        return NodeKind(value)
    except ValueError:
        raise ValidationError(f"Unknown node kind: {value}")


def parent_column(kind: NodeKind):
    """Authoritative parent pointer of a level (None for the root level)."""
    return {
        NodeKind.WEBSITE: None,
        NodeKind.SECTION: Section.website_id,
        NodeKind.SECTION_ITEM: SectionItem.section_id,
        NodeKind.SUBSECTION: SubSection.section_item_id,
    }[kind]


def parent_id_of(kind: NodeKind, node) -> UUID | None:
    column = parent_column(kind)
    return getattr(node, column.key) if column is not None else None


def website_id_of(kind: NodeKind, node) -> UUID:
    if kind == NodeKind.WEBSITE:
        return node.id
    return node.website_id


async def load_node(db: AsyncSession, kind: NodeKind, node_id: Any):
    """Fetch a node by id or raise NotFoundError."""
    node_uuid = parse_id(node_id, f"{LABELS[kind].lower()} ID")
    node = await db.get(NODE_MODELS[kind], node_uuid)
    if node is None:
        raise NotFoundError(f"{LABELS[kind]} with ID {node_uuid}")
    return node


def is_inactive(node) -> bool:
    # Websites have no active flag
    return not isinstance(node, Website) and not node.is_active
