"""
Node kinds of the content tree and the tagged parent reference.
"""
from dataclasses import dataclass
from enum import Enum as PyEnum
from uuid import UUID


class NodeKind(str, PyEnum):
    WEBSITE = "website"
    SECTION = "section"
    SECTION_ITEM = "section_item"
    SUBSECTION = "subsection"

    @property
    def depth(self) -> int:
        return TREE_LEVELS.index(self)

    def descendants(self) -> list["NodeKind"]:
        """Kinds below this one, nearest first."""
        return TREE_LEVELS[self.depth + 1:]


TREE_LEVELS = [
    NodeKind.WEBSITE,
    NodeKind.SECTION,
    NodeKind.SECTION_ITEM,
    NodeKind.SUBSECTION,
]


@dataclass(frozen=True)
class ParentRef:
    """Parent of a content element: one kind, one id."""

    kind: NodeKind
    id: UUID
