"""
Tree Assembler

Builds the nested, optionally language-projected content tree of a website
or of any subtree rooted at a section, section item or subsection.

The tree is loaded level by level: one query per level for the nodes, one
query for every content element below the root and one for the requested
translations. The number of round trips depends on the depth of the tree,
never on the number of nodes.
"""
import logging
from collections import defaultdict
from typing import Any
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from webcms.core.exceptions import ValidationError
from webcms.models import (
    NODE_MODELS,
    ContentElement,
    ContentTranslation,
    NodeKind,
    ParentRef,
    Section,
    SectionItem,
    SubSection,
)
from webcms.schemas.tree import (
    ContentElementNode,
    SectionItemNode,
    SectionNode,
    SubSectionNode,
    TreeNode,
    WebsiteNode,
)
from webcms.services.nodes import is_inactive, parent_column, parse_id

logger = logging.getLogger(__name__)

NODE_SCHEMAS = {
    NodeKind.WEBSITE: WebsiteNode,
    NodeKind.SECTION: SectionNode,
    NodeKind.SECTION_ITEM: SectionItemNode,
    NodeKind.SUBSECTION: SubSectionNode,
}

# Attribute of a node schema holding the next level's children
CHILD_FIELDS = {
    NodeKind.WEBSITE: "sections",
    NodeKind.SECTION: "section_items",
    NodeKind.SECTION_ITEM: "subsections",
}


def _sorted(query, model):
    return query.order_by(model.order, model.created_at, model.id)


class TreeAssembler:
    """Read side of the content tree."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def assemble(
        self,
        kind: NodeKind,
        root_id: Any,
        active_only: bool = False,
        language_id: Any = None,
    ) -> TreeNode | None:
        """Assemble the subtree rooted at ``root_id``.

        Returns None when the root does not exist or is filtered out by
        ``active_only``.
        """
        root_uuid = parse_id(root_id, "root ID")
        language_uuid = parse_id(language_id, "language ID") if language_id is not None else None

        root = await self.db.get(NODE_MODELS[kind], root_uuid)
        if root is None or (active_only and is_inactive(root)):
            return None

        trees = await self._assemble_from([root], kind, active_only, language_uuid)
        return trees[0]

    async def website_tree(self, website_id: Any, active_only: bool = False, language_id: Any = None) -> WebsiteNode | None:
        return await self.assemble(NodeKind.WEBSITE, website_id, active_only, language_id)

    async def section_tree(self, section_id: Any, active_only: bool = False, language_id: Any = None) -> SectionNode | None:
        return await self.assemble(NodeKind.SECTION, section_id, active_only, language_id)

    async def section_item_tree(self, section_item_id: Any, active_only: bool = False, language_id: Any = None) -> SectionItemNode | None:
        return await self.assemble(NodeKind.SECTION_ITEM, section_item_id, active_only, language_id)

    async def subsection_tree(self, subsection_id: Any, active_only: bool = False, language_id: Any = None) -> SubSectionNode | None:
        return await self.assemble(NodeKind.SUBSECTION, subsection_id, active_only, language_id)

    async def subsection_tree_by_slug(
        self,
        slug: str,
        active_only: bool = False,
        language_id: Any = None,
    ) -> SubSectionNode | None:
        if not isinstance(slug, str) or not slug.strip():
            raise ValidationError("Slug must be a non-empty string", details={"value": str(slug)})
        language_uuid = parse_id(language_id, "language ID") if language_id is not None else None

        result = await self.db.execute(select(SubSection).where(SubSection.slug == slug.strip()))
        subsection = result.scalar_one_or_none()
        if subsection is None or (active_only and is_inactive(subsection)):
            return None

        trees = await self._assemble_from([subsection], NodeKind.SUBSECTION, active_only, language_uuid)
        return trees[0]

    async def main_subsection(
        self,
        section_item_id: Any = None,
        section_id: Any = None,
        website_id: Any = None,
        language_id: Any = None,
    ) -> SubSectionNode | None:
        """The active main subsection of a section item, section or website.

        Exactly one scope must be given. Subsections under an inactive section
        or section item never qualify. For a section or website the first
        match in display order wins.
        """
        scopes = {
            "section item ID": (section_item_id, SubSection.section_item_id),
            "section ID": (section_id, SubSection.section_id),
            "website ID": (website_id, SubSection.website_id),
        }
        given = [(label, value, column) for label, (value, column) in scopes.items() if value is not None]
        if len(given) != 1:
            raise ValidationError("Exactly one of section_item_id, section_id or website_id is required")
        label, value, column = given[0]
        scope_uuid = parse_id(value, label)
        language_uuid = parse_id(language_id, "language ID") if language_id is not None else None

        query = (
            select(SubSection)
            .join(SectionItem, SectionItem.id == SubSection.section_item_id)
            .join(Section, Section.id == SubSection.section_id)
            .where(
                column == scope_uuid,
                SubSection.is_main.is_(True),
                SubSection.is_active.is_(True),
                SectionItem.is_active.is_(True),
                Section.is_active.is_(True),
            )
            .order_by(Section.order, SectionItem.order, SubSection.order, SubSection.id)
            .limit(1)
        )
        result = await self.db.execute(query)
        subsection = result.scalar_one_or_none()
        if subsection is None:
            return None

        trees = await self._assemble_from([subsection], NodeKind.SUBSECTION, True, language_uuid)
        return trees[0]

    async def sections_for_website(
        self,
        website_id: Any,
        active_only: bool = False,
        language_id: Any = None,
    ) -> list[SectionNode] | None:
        """Section trees of a website, in display order.

        Returns None when the website does not exist.
        """
        website_uuid = parse_id(website_id, "website ID")
        language_uuid = parse_id(language_id, "language ID") if language_id is not None else None

        if await self.db.get(NODE_MODELS[NodeKind.WEBSITE], website_uuid) is None:
            return None

        query = select(Section).where(Section.website_id == website_uuid)
        if active_only:
            query = query.where(Section.is_active.is_(True))
        result = await self.db.execute(_sorted(query, Section))
        sections = list(result.scalars().all())
        if not sections:
            return []
        return await self._assemble_from(sections, NodeKind.SECTION, active_only, language_uuid)

    async def _assemble_from(
        self,
        roots: list,
        root_kind: NodeKind,
        active_only: bool,
        language_id: UUID | None,
    ) -> list[TreeNode]:
        # 1. Nodes, one batched query per level
        levels: dict[NodeKind, list] = {root_kind: roots}
        parent_ids = [node.id for node in roots]
        for kind in root_kind.descendants():
            if not parent_ids:
                levels[kind] = []
                continue
            model = NODE_MODELS[kind]
            query = select(model).where(parent_column(kind).in_(parent_ids))
            if active_only:
                query = query.where(model.is_active.is_(True))
            result = await self.db.execute(_sorted(query, model))
            levels[kind] = list(result.scalars().all())
            parent_ids = [node.id for node in levels[kind]]

        # 2. Content elements of every collected node
        elements = await self._load_elements(levels, active_only)

        # 3. Translations for the requested language only
        values: dict[UUID, str] = {}
        if language_id is not None and elements:
            values = await self._load_values(elements, language_id, active_only)

        # 4. Re-nest bottom up
        elements_by_parent: dict[ParentRef, list[ContentElementNode]] = defaultdict(list)
        for element in elements:
            node = ContentElementNode.model_validate(element)
            node.value = values.get(element.id)
            elements_by_parent[element.parent].append(node)

        children_by_parent: dict[UUID, list] = defaultdict(list)
        built: list[TreeNode] = []
        for kind in reversed([root_kind, *root_kind.descendants()]):
            schema = NODE_SCHEMAS[kind]
            next_children = children_by_parent
            children_by_parent = defaultdict(list)
            built = []
            for orm_node in levels[kind]:
                node = schema.model_validate(orm_node)
                node.elements = elements_by_parent.get(ParentRef(kind, orm_node.id), [])
                child_field = CHILD_FIELDS.get(kind)
                if child_field:
                    setattr(node, child_field, next_children.get(orm_node.id, []))
                column = parent_column(kind)
                if column is not None:
                    children_by_parent[getattr(orm_node, column.key)].append(node)
                built.append(node)

        logger.debug(
            f"Assembled {len(built)} {root_kind.value} tree(s) with "
            + ", ".join(f"{len(nodes)} {kind.value}" for kind, nodes in levels.items())
            + f", {len(elements)} elements"
        )
        return built

    async def _load_elements(self, levels: dict[NodeKind, list], active_only: bool) -> list[ContentElement]:
        clauses = [
            and_(
                ContentElement.parent_kind == kind,
                ContentElement.parent_id.in_([node.id for node in nodes]),
            )
            for kind, nodes in levels.items()
            if nodes
        ]
        if not clauses:
            return []
        query = select(ContentElement).where(or_(*clauses))
        if active_only:
            query = query.where(ContentElement.is_active.is_(True))
        result = await self.db.execute(_sorted(query, ContentElement))
        return list(result.scalars().all())

    async def _load_values(
        self,
        elements: list[ContentElement],
        language_id: UUID,
        active_only: bool,
    ) -> dict[UUID, str]:
        query = select(
            ContentTranslation.content_element_id,
            ContentTranslation.content,
        ).where(
            ContentTranslation.content_element_id.in_([element.id for element in elements]),
            ContentTranslation.language_id == language_id,
        )
        if active_only:
            query = query.where(ContentTranslation.is_active.is_(True))
        result = await self.db.execute(query)
        return {element_id: content for element_id, content in result.all()}
