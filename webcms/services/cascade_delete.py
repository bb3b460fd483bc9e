"""
Cascade Deletion Engine

Deletes a website, section, section item or subsection together with every
node, content element and translation below it, all-or-nothing, then hands
the assets those rows referenced to the cleanup scheduler.

Lifecycle of one delete (logged at DEBUG):

    STARTED -> AUTHORIZED -> DESCENDANTS_DISCOVERED -> TRANSACTION_OPEN
    -> BULK_DELETES_APPLIED -> COMMITTED -> ASSET_CLEANUP_SCHEDULED

Any failure before COMMITTED ends in ABORTED with nothing deleted. The
transactional part runs in its own task and session and is shielded from
cancellation of the caller, so an abandoned request still commits or rolls
back cleanly.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Any, Callable, Optional
from uuid import UUID

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webcms.core.exceptions import ConflictError, ValidationError
from webcms.integrations.storage import AssetStore
from webcms.models import (
    EDITOR_ROLES,
    NODE_MODELS,
    ContentElement,
    ContentTranslation,
    Language,
    NodeKind,
    SubSection,
    WebsiteRole,
    WebsiteUser,
)
from webcms.services.asset_cleanup import AssetCleanupScheduler
from webcms.services.authorization import WebsiteAuthorizer
from webcms.services.nodes import (
    LABELS,
    load_node,
    parent_column,
    parse_id,
    parse_kind,
    website_id_of,
)
from webcms.services.transactions import UnitOfWork

logger = logging.getLogger(__name__)

# Columns that may hold an asset URL
ASSET_URL_FIELDS = ("logo", "image", "image_url", "file_url")

# Summary counter for each tree level
COUNT_FIELDS = {
    NodeKind.WEBSITE: "websites",
    NodeKind.SECTION: "sections",
    NodeKind.SECTION_ITEM: "section_items",
    NodeKind.SUBSECTION: "subsections",
}

# Level whose ids a level's rows point at
TREE_PARENT = {
    NodeKind.SECTION: NodeKind.WEBSITE,
    NodeKind.SECTION_ITEM: NodeKind.SECTION,
    NodeKind.SUBSECTION: NodeKind.SECTION_ITEM,
}

_NO_SYNC = {"synchronize_session": False}


class DeletionState(str, PyEnum):
    STARTED = "STARTED"
    AUTHORIZED = "AUTHORIZED"
    DESCENDANTS_DISCOVERED = "DESCENDANTS_DISCOVERED"
    TRANSACTION_OPEN = "TRANSACTION_OPEN"
    BULK_DELETES_APPLIED = "BULK_DELETES_APPLIED"
    COMMITTED = "COMMITTED"
    ASSET_CLEANUP_SCHEDULED = "ASSET_CLEANUP_SCHEDULED"
    ABORTED = "ABORTED"


@dataclass
class DeletionSummary:
    """Rows removed by one cascade delete."""

    root_kind: NodeKind
    root_id: UUID
    websites: int = 0
    sections: int = 0
    section_items: int = 0
    subsections: int = 0
    content_elements: int = 0
    content_translations: int = 0
    languages: int = 0
    website_users: int = 0
    asset_ids: list[str] = field(default_factory=list)
    assets_scheduled: int = 0


@dataclass
class ActiveStateSummary:
    """Rows switched by one cascading activate or deactivate."""

    root_kind: NodeKind
    root_id: UUID
    is_active: bool
    sections: int = 0
    section_items: int = 0
    subsections: int = 0
    content_elements: int = 0
    content_translations: int = 0
    # Subsection that took over the main flag from a deactivated one
    promoted_main_id: Optional[UUID] = None


@dataclass
class _Subtree:
    root_kind: NodeKind
    root_id: UUID
    # node ids per level, root level included
    ids: dict[NodeKind, list[UUID]]
    asset_ids: list[str] = field(default_factory=list)

    def element_clause(self):
        """Elements attached to any node of the subtree."""
        clauses = [
            and_(ContentElement.parent_kind == kind, ContentElement.parent_id.in_(ids))
            for kind, ids in self.ids.items()
            if ids
        ]
        if self.root_kind == NodeKind.WEBSITE:
            clauses.append(ContentElement.website_id == self.root_id)
        return or_(*clauses)


class CascadeDeletionEngine:
    """Hard and soft cascading deletes over the content tree."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        asset_store: AssetStore,
        cleanup_scheduler: AssetCleanupScheduler,
        authorizer_factory: Callable[[AsyncSession], WebsiteAuthorizer] = WebsiteAuthorizer,
    ):
        self.session_factory = session_factory
        self.asset_store = asset_store
        self.cleanup_scheduler = cleanup_scheduler
        self.authorizer_factory = authorizer_factory

    async def delete(self, kind: Any, node_id: Any, principal_id: Any) -> DeletionSummary:
        """Delete a node and everything below it.

        Raises:
            ValidationError: malformed id or kind
            NotFoundError: the node does not exist
            AuthorizationError: the principal lacks the required website role
            ConflictError: the node was deleted concurrently, or the store
                reported a write conflict
            DatabaseError: any other store failure; nothing was deleted
        """
        kind = parse_kind(kind)
        node_uuid = parse_id(node_id, f"{LABELS[kind].lower()} ID")
        principal_uuid = parse_id(principal_id, "principal ID")
        return await self._shielded(self._delete(kind, node_uuid, principal_uuid))

    async def deactivate(self, kind: Any, node_id: Any, principal_id: Any) -> ActiveStateSummary:
        """Set ``is_active = false`` on a node and on every descendant row.

        Deactivating the main subsection of a section item hands the main
        flag to its first active sibling; with no active sibling left the
        call is rejected with ValidationError.
        """
        return await self.set_active(kind, node_id, principal_id, False)

    async def activate(self, kind: Any, node_id: Any, principal_id: Any) -> ActiveStateSummary:
        """Set ``is_active = true`` on a node and on every descendant row."""
        return await self.set_active(kind, node_id, principal_id, True)

    async def set_active(self, kind: Any, node_id: Any, principal_id: Any, is_active: bool) -> ActiveStateSummary:
        kind = parse_kind(kind)
        node_uuid = parse_id(node_id, f"{LABELS[kind].lower()} ID")
        principal_uuid = parse_id(principal_id, "principal ID")
        return await self._shielded(self._set_active(kind, node_uuid, principal_uuid, bool(is_active)))

    async def _shielded(self, coro):
        task = asyncio.ensure_future(coro)
        task.add_done_callback(self._log_detached_result)
        return await asyncio.shield(task)

    @staticmethod
    def _log_detached_result(task: asyncio.Task) -> None:
        # Marks the exception as retrieved when the caller was cancelled
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Cascade task finished with {error!r}")

    # ------------------------------------------------------------------
    # Hard delete
    # ------------------------------------------------------------------

    async def _delete(self, kind: NodeKind, node_id: UUID, principal_id: UUID) -> DeletionSummary:
        label = LABELS[kind]
        self._transition(DeletionState.STARTED, kind, node_id)
        summary = DeletionSummary(root_kind=kind, root_id=node_id)

        async with self.session_factory() as session:
            try:
                async with UnitOfWork(session).begin(f"delete {kind.value}") as db:
                    root = await load_node(db, kind, node_id)
                    await self._authorize(db, kind, root, principal_id, "delete")
                    self._transition(DeletionState.AUTHORIZED, kind, node_id)

                    subtree = await self._discover(db, kind, root, collect_assets=True)
                    self._transition(DeletionState.DESCENDANTS_DISCOVERED, kind, node_id)

                    self._transition(DeletionState.TRANSACTION_OPEN, kind, node_id)
                    await self._apply_deletes(db, subtree, summary)
                    self._transition(DeletionState.BULK_DELETES_APPLIED, kind, node_id)
            except BaseException as e:
                self._transition(DeletionState.ABORTED, kind, node_id, repr(e))
                raise

        self._transition(DeletionState.COMMITTED, kind, node_id)
        logger.info(
            f"Deleted {label.lower()} {node_id}: {summary.sections} sections, "
            f"{summary.section_items} section items, {summary.subsections} subsections, "
            f"{summary.content_elements} elements, {summary.content_translations} translations"
        )

        summary.asset_ids = subtree.asset_ids
        if self.cleanup_scheduler.schedule(subtree.asset_ids) is not None:
            summary.assets_scheduled = len(subtree.asset_ids)
        self._transition(DeletionState.ASSET_CLEANUP_SCHEDULED, kind, node_id, f"{summary.assets_scheduled} assets")
        return summary

    async def _apply_deletes(self, db: AsyncSession, subtree: _Subtree, summary: DeletionSummary) -> None:
        root_kind, root_id = subtree.root_kind, subtree.root_id

        element_ids = select(ContentElement.id).where(subtree.element_clause())
        summary.content_translations += await self._rowcount(
            db, delete(ContentTranslation).where(ContentTranslation.content_element_id.in_(element_ids))
        )
        summary.content_elements += await self._rowcount(
            db, delete(ContentElement).where(subtree.element_clause())
        )

        # Deepest level first, each one matched by its parent pointer
        for kind in reversed(root_kind.descendants()):
            parent_ids = subtree.ids[TREE_PARENT[kind]]
            if not parent_ids:
                continue
            model = NODE_MODELS[kind]
            count = await self._rowcount(db, delete(model).where(parent_column(kind).in_(parent_ids)))
            setattr(summary, COUNT_FIELDS[kind], getattr(summary, COUNT_FIELDS[kind]) + count)

        if root_kind == NodeKind.WEBSITE:
            language_ids = select(Language.id).where(Language.website_id == root_id)
            summary.content_translations += await self._rowcount(
                db, delete(ContentTranslation).where(ContentTranslation.language_id.in_(language_ids))
            )
            summary.languages = await self._rowcount(db, delete(Language).where(Language.website_id == root_id))
            summary.website_users = await self._rowcount(
                db, delete(WebsiteUser).where(WebsiteUser.website_id == root_id)
            )

        model = NODE_MODELS[root_kind]
        count = await self._rowcount(db, delete(model).where(model.id == root_id))
        if count == 0:
            raise ConflictError(
                f"{LABELS[root_kind]} was deleted by another process",
                details={"id": str(root_id)},
            )
        setattr(summary, COUNT_FIELDS[root_kind], getattr(summary, COUNT_FIELDS[root_kind]) + count)

    # ------------------------------------------------------------------
    # Soft delete
    # ------------------------------------------------------------------

    async def _set_active(
        self,
        kind: NodeKind,
        node_id: UUID,
        principal_id: UUID,
        is_active: bool,
    ) -> ActiveStateSummary:
        verb = "activate" if is_active else "deactivate"
        summary = ActiveStateSummary(root_kind=kind, root_id=node_id, is_active=is_active)

        async with self.session_factory() as session:
            async with UnitOfWork(session).begin(f"{verb} {kind.value}") as db:
                root = await load_node(db, kind, node_id)
                await self._authorize(db, kind, root, principal_id, verb)

                if kind == NodeKind.SUBSECTION and root.is_main and not is_active:
                    summary.promoted_main_id = await self._hand_over_main(db, root)

                subtree = await self._discover(db, kind, root, collect_assets=False)

                for level, ids in subtree.ids.items():
                    # Websites carry no active flag
                    if level == NodeKind.WEBSITE or not ids:
                        continue
                    model = NODE_MODELS[level]
                    count = await self._rowcount(
                        db, update(model).where(model.id.in_(ids)).values(is_active=is_active)
                    )
                    setattr(summary, COUNT_FIELDS[level], count)

                element_ids = select(ContentElement.id).where(subtree.element_clause())
                summary.content_translations = await self._rowcount(
                    db,
                    update(ContentTranslation)
                    .where(ContentTranslation.content_element_id.in_(element_ids))
                    .values(is_active=is_active),
                )
                summary.content_elements = await self._rowcount(
                    db, update(ContentElement).where(subtree.element_clause()).values(is_active=is_active)
                )

        logger.info(
            f"{verb.capitalize()}d {LABELS[kind].lower()} {node_id}: {summary.sections} sections, "
            f"{summary.section_items} section items, {summary.subsections} subsections, "
            f"{summary.content_elements} elements"
        )
        return summary

    async def _hand_over_main(self, db: AsyncSession, subsection) -> UUID:
        """Move the main flag of a section item to the first active sibling."""
        result = await db.execute(
            select(SubSection.id)
            .where(
                SubSection.section_item_id == subsection.section_item_id,
                SubSection.id != subsection.id,
                SubSection.is_active.is_(True),
            )
            .order_by(SubSection.order, SubSection.created_at, SubSection.id)
            .limit(1)
        )
        successor_id = result.scalar_one_or_none()
        if successor_id is None:
            raise ValidationError(
                "Cannot deactivate the main subsection while no other subsection of its "
                "section item is active",
                details={"id": str(subsection.id), "section_item_id": str(subsection.section_item_id)},
            )

        await self._rowcount(db, update(SubSection).where(SubSection.id == subsection.id).values(is_main=False))
        await self._rowcount(db, update(SubSection).where(SubSection.id == successor_id).values(is_main=True))
        logger.info(f"Subsection {successor_id} is now the main subsection of {subsection.section_item_id}")
        return successor_id

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _authorize(self, db: AsyncSession, kind: NodeKind, root, principal_id: UUID, verb: str) -> None:
        allowed = {WebsiteRole.OWNER} if kind == NodeKind.WEBSITE else EDITOR_ROLES
        await self.authorizer_factory(db).require_role(
            principal_id,
            website_id_of(kind, root),
            allowed,
            f"{verb} this {LABELS[kind].lower()}",
        )

    async def _discover(self, db: AsyncSession, kind: NodeKind, root, collect_assets: bool) -> _Subtree:
        """Collect node ids level by level, and the asset ids they reference."""
        subtree = _Subtree(root_kind=kind, root_id=root.id, ids={kind: [root.id]})
        rows = [root]

        parent_ids = [root.id]
        for level in kind.descendants():
            if parent_ids:
                model = NODE_MODELS[level]
                result = await db.execute(select(model).where(parent_column(level).in_(parent_ids)))
                level_rows = list(result.scalars().all())
            else:
                level_rows = []
            subtree.ids[level] = [row.id for row in level_rows]
            rows.extend(level_rows)
            parent_ids = subtree.ids[level]

        if collect_assets:
            result = await db.execute(select(ContentElement).where(subtree.element_clause()))
            rows.extend(result.scalars().all())
            subtree.asset_ids = self._asset_ids(rows)

        logger.debug(
            f"Discovered below {kind.value} {root.id}: "
            + ", ".join(f"{len(ids)} {level.value}" for level, ids in subtree.ids.items())
        )
        return subtree

    def _asset_ids(self, rows: list) -> list[str]:
        found: list[str] = []
        for row in rows:
            for name in ASSET_URL_FIELDS:
                asset_id = self.asset_store.extract_asset_id(getattr(row, name, None))
                if asset_id:
                    found.append(asset_id)
            metadata = getattr(row, "metadata_", None)
            if isinstance(metadata, dict) and metadata.get("assetId"):
                found.append(str(metadata["assetId"]))
        return list(dict.fromkeys(found))

    @staticmethod
    async def _rowcount(db: AsyncSession, statement) -> int:
        result = await db.execute(statement.execution_options(**_NO_SYNC))
        return result.rowcount

    @staticmethod
    def _transition(state: DeletionState, kind: NodeKind, node_id: UUID, note: Optional[str] = None) -> None:
        suffix = f" ({note})" if note else ""
        logger.debug(f"Cascade {kind.value} {node_id}: {state.value}{suffix}")

