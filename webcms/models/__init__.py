"""
SQLAlchemy models for webcms.
"""
from webcms.models.base import Base, BaseModel
from webcms.models.node import NodeKind, ParentRef, TREE_LEVELS
from webcms.models.website import EDITOR_ROLES, Website, WebsiteRole, WebsiteUser
from webcms.models.language import Language
from webcms.models.section import Section
from webcms.models.section_item import SectionItem
from webcms.models.subsection import SubSection
from webcms.models.content import ContentElement, ContentTranslation, ElementType

# Model holding the nodes of each tree level
NODE_MODELS = {
    NodeKind.WEBSITE: Website,
    NodeKind.SECTION: Section,
    NodeKind.SECTION_ITEM: SectionItem,
    NodeKind.SUBSECTION: SubSection,
}

__all__ = [
    "Base",
    "BaseModel",
    "NodeKind",
    "ParentRef",
    "TREE_LEVELS",
    "NODE_MODELS",
    "Website",
    "WebsiteRole",
    "WebsiteUser",
    "EDITOR_ROLES",
    "Language",
    "Section",
    "SectionItem",
    "SubSection",
    "ContentElement",
    "ContentTranslation",
    "ElementType",
]
