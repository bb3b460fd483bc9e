"""
Ordering Maintainer

Keeps the ``order`` field of sections, section items and subsections unique
and within ``[0, sibling_count)`` inside each parent scope.

Every write is compare-and-set: it only applies while the row still holds the
order it had when it was read, so a concurrent change shows up as a
ConflictError instead of a silently duplicated slot. Rows that swap slots are
first parked on a negative temporary order so the unique constraint on
``(parent, order)`` holds after every single statement.

Every operation requires an editor role on the website that owns the scope.
"""
import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from webcms.core.exceptions import ConflictError, NotFoundError, ValidationError
from webcms.models import EDITOR_ROLES, NODE_MODELS, TREE_LEVELS, ContentElement, NodeKind, SubSection
from webcms.schemas.ordering import Direction
from webcms.services.authorization import WebsiteAuthorizer
from webcms.services.nodes import (
    LABELS,
    load_node,
    parent_column,
    parent_id_of,
    parse_id,
    website_id_of,
)
from webcms.services.transactions import UnitOfWork

logger = logging.getLogger(__name__)

ORDERED_KINDS = (NodeKind.SECTION, NodeKind.SECTION_ITEM, NodeKind.SUBSECTION)

# Kinds that can move to another parent, with the denormalized columns they carry
REPARENTABLE_KINDS = (NodeKind.SECTION_ITEM, NodeKind.SUBSECTION)

_NO_SYNC = {"synchronize_session": False}


def _parked(slot: int) -> int:
    """Temporary order for a row leaving ``slot``. Never collides with a real slot."""
    return -(slot + 1)


class OrderingMaintainer:
    """Order updates for the three ordered levels of the content tree."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        conflict_retries: int = 0,
        authorizer_factory: Callable[[AsyncSession], WebsiteAuthorizer] = WebsiteAuthorizer,
    ):
        self.session_factory = session_factory
        self.conflict_retries = conflict_retries
        self.authorizer_factory = authorizer_factory

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def set_order(self, kind: NodeKind, node_id: Any, new_order: Any, *, principal_id: Any) -> list:
        """Give a node a new slot, swapping with the sibling that holds it.

        Returns the siblings of the node in their new order.
        """
        kind = self._ordered_kind(kind)
        node_uuid = parse_id(node_id, f"{LABELS[kind].lower()} ID")
        new_order = self._parse_order(new_order)
        principal_uuid = parse_id(principal_id, "principal ID")

        async with self.session_factory() as session:
            async with UnitOfWork(session).begin(f"set {kind.value} order") as db:
                node = await load_node(db, kind, node_uuid)
                await self._authorize(db, kind, node, principal_uuid, "reorder")
                parent_id = parent_id_of(kind, node)
                siblings = await self._load_scope(db, kind, parent_id)
                current = {sibling.id: sibling.order for sibling in siblings}

                if not 0 <= new_order < len(siblings):
                    raise ValidationError(
                        f"Order must be between 0 and {len(siblings) - 1}",
                        details={"order": new_order, "siblings": len(siblings)},
                    )

                old_order = current[node_uuid]
                if old_order != new_order:
                    occupant = next((s for s in siblings if s.order == new_order), None)
                    if occupant is None:
                        await self._move_row(db, kind, node_uuid, old_order, new_order)
                    else:
                        await self._swap(db, kind, node_uuid, old_order, occupant.id, new_order)
                    logger.info(f"{LABELS[kind]} {node_uuid} moved from {old_order} to {new_order}")

                return await self._fetch_siblings(db, kind, parent_id)

    async def bulk_reorder(
        self,
        kind: NodeKind,
        updates: Iterable[Any],
        parent_id: Any = None,
        retries: int | None = None,
        *,
        principal_id: Any,
    ) -> list:
        """Apply several ``{id, order}`` updates within one parent scope atomically.

        When ``parent_id`` is given every listed node must belong to it.

        Transaction conflicts are retried up to ``retries`` times with a
        linear backoff; every retry reads the scope again.
        """
        kind = self._ordered_kind(kind)
        pairs = self._normalize_updates(updates)
        expected_parent = parse_id(parent_id, "parent ID") if parent_id is not None else None
        principal_uuid = parse_id(principal_id, "principal ID")
        retries = self.conflict_retries if retries is None else retries

        attempt = 0
        while True:
            try:
                return await self._bulk_reorder_once(kind, pairs, principal_uuid, expected_parent)
            except ConflictError as e:
                attempt += 1
                if attempt > retries:
                    raise
                logger.warning(f"Bulk {kind.value} reorder conflict (attempt {attempt}/{retries}): {e.detail}")
                await asyncio.sleep(0.1 * attempt)

    async def move(self, kind: NodeKind, node_id: Any, direction: Any, *, principal_id: Any) -> list:
        """Swap a node with its nearest sibling above (``up``) or below (``down``).

        A node already at the boundary stays where it is.
        """
        kind = self._ordered_kind(kind)
        node_uuid = parse_id(node_id, f"{LABELS[kind].lower()} ID")
        try:
            direction = Direction(direction)
        except ValueError:
            raise ValidationError(f"Invalid direction: {direction}", details={"allowed": [d.value for d in Direction]})
        principal_uuid = parse_id(principal_id, "principal ID")

        async with self.session_factory() as session:
            async with UnitOfWork(session).begin(f"move {kind.value}") as db:
                node = await load_node(db, kind, node_uuid)
                await self._authorize(db, kind, node, principal_uuid, "move")
                parent_id = parent_id_of(kind, node)
                siblings = await self._load_scope(db, kind, parent_id)
                index = next(i for i, sibling in enumerate(siblings) if sibling.id == node_uuid)
                target = index - 1 if direction == Direction.UP else index + 1

                if 0 <= target < len(siblings):
                    node_order = siblings[index].order
                    other = siblings[target]
                    await self._swap(db, kind, node_uuid, node_order, other.id, other.order)
                    logger.info(f"{LABELS[kind]} {node_uuid} moved {direction.value}")
                else:
                    logger.debug(f"{LABELS[kind]} {node_uuid} already at the {direction.value} boundary")

                return await self._fetch_siblings(db, kind, parent_id)

    async def reorder_all(self, kind: NodeKind, parent_id: Any, *, principal_id: Any) -> list:
        """Renumber a whole scope densely as ``0..n-1``, keeping the current sequence."""
        kind = self._ordered_kind(kind)
        parent_kind = TREE_LEVELS[kind.depth - 1]
        parent_uuid = parse_id(parent_id, f"{LABELS[parent_kind].lower()} ID")
        principal_uuid = parse_id(principal_id, "principal ID")

        async with self.session_factory() as session:
            async with UnitOfWork(session).begin(f"reorder {kind.value}s") as db:
                parent = await load_node(db, parent_kind, parent_uuid)
                await self._authorize(db, parent_kind, parent, principal_uuid, f"reorder the {kind.value}s of")
                await self._compact(db, kind, parent_uuid)
                return await self._fetch_siblings(db, kind, parent_uuid)

    async def reparent(self, kind: NodeKind, node_id: Any, new_parent_id: Any, *, principal_id: Any):
        """Move a section item or subsection under another parent of the same website.

        The node goes to the end of its new scope, the old scope is compacted
        and the denormalized ancestor ids of the node and everything below it
        follow the move.
        """
        kind = self._ordered_kind(kind)
        if kind not in REPARENTABLE_KINDS:
            raise ValidationError(f"{LABELS[kind]}s cannot be moved to another parent")
        parent_kind = TREE_LEVELS[kind.depth - 1]
        node_uuid = parse_id(node_id, f"{LABELS[kind].lower()} ID")
        parent_uuid = parse_id(new_parent_id, f"{LABELS[parent_kind].lower()} ID")
        principal_uuid = parse_id(principal_id, "principal ID")

        async with self.session_factory() as session:
            async with UnitOfWork(session).begin(f"reparent {kind.value}") as db:
                node = await load_node(db, kind, node_uuid)
                await self._authorize(db, kind, node, principal_uuid, "move")
                new_parent = await load_node(db, parent_kind, parent_uuid)
                old_parent_id = parent_id_of(kind, node)

                if new_parent.website_id != node.website_id:
                    raise ValidationError(
                        f"{LABELS[kind]} can only move within its website",
                        details={"website_id": str(node.website_id)},
                    )
                if old_parent_id == parent_uuid:
                    return node

                model = NODE_MODELS[kind]
                column = parent_column(kind)
                result = await db.execute(
                    select(func.max(model.order)).where(column == parent_uuid)
                )
                last = result.scalar()
                end = 0 if last is None else last + 1

                values = {column.key: parent_uuid, "order": end, "website_id": new_parent.website_id}
                if kind == NodeKind.SUBSECTION:
                    values["section_id"] = new_parent.section_id
                result = await db.execute(
                    update(model)
                    .where(model.id == node_uuid, column == old_parent_id, model.order == node.order)
                    .values(**values)
                    .execution_options(**_NO_SYNC)
                )
                self._expect_rows(result, 1, kind, node_uuid)

                await self._cascade_ancestry(db, kind, node_uuid, new_parent)
                await self._compact(db, kind, old_parent_id)

                await db.refresh(node)
                logger.info(f"{LABELS[kind]} {node_uuid} moved from {old_parent_id} to {parent_uuid} at {end}")
                return node

    async def set_main(self, subsection_id: Any, *, principal_id: Any) -> SubSection:
        """Mark a subsection as the main one of its section item."""
        subsection_uuid = parse_id(subsection_id, "subsection ID")
        principal_uuid = parse_id(principal_id, "principal ID")

        async with self.session_factory() as session:
            async with UnitOfWork(session).begin("set main subsection") as db:
                subsection = await load_node(db, NodeKind.SUBSECTION, subsection_uuid)
                await self._authorize(db, NodeKind.SUBSECTION, subsection, principal_uuid, "promote")
                await db.execute(
                    update(SubSection)
                    .where(
                        SubSection.section_item_id == subsection.section_item_id,
                        SubSection.id != subsection_uuid,
                        SubSection.is_main.is_(True),
                    )
                    .values(is_main=False)
                    .execution_options(**_NO_SYNC)
                )
                await db.execute(
                    update(SubSection)
                    .where(SubSection.id == subsection_uuid)
                    .values(is_main=True)
                    .execution_options(**_NO_SYNC)
                )
                await db.refresh(subsection)
                return subsection

    async def _authorize(self, db: AsyncSession, kind: NodeKind, node, principal_id: UUID, verb: str) -> None:
        await self.authorizer_factory(db).require_role(
            principal_id,
            website_id_of(kind, node),
            EDITOR_ROLES,
            f"{verb} this {LABELS[kind].lower()}",
        )

    # ------------------------------------------------------------------
    # Scope reads
    # ------------------------------------------------------------------

    async def _load_scope(self, db: AsyncSession, kind: NodeKind, parent_id: UUID) -> list:
        """Snapshot of the siblings under ``parent_id`` that later writes are checked against."""
        return await self._fetch_siblings(db, kind, parent_id)

    async def _fetch_siblings(self, db: AsyncSession, kind: NodeKind, parent_id: UUID) -> list:
        model = NODE_MODELS[kind]
        result = await db.execute(
            select(model)
            .where(parent_column(kind) == parent_id)
            .order_by(model.order, model.created_at, model.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Guarded writes
    # ------------------------------------------------------------------

    async def _bulk_reorder_once(
        self,
        kind: NodeKind,
        pairs: list[tuple[UUID, int]],
        principal_id: UUID,
        expected_parent: UUID | None = None,
    ) -> list:
        model = NODE_MODELS[kind]
        ids = [node_id for node_id, _ in pairs]

        async with self.session_factory() as session:
            async with UnitOfWork(session).begin(f"bulk reorder {kind.value}s") as db:
                result = await db.execute(select(model).where(model.id.in_(ids)))
                found = {node.id: node for node in result.scalars().all()}
                missing = [str(node_id) for node_id in ids if node_id not in found]
                if missing:
                    raise NotFoundError(f"{LABELS[kind]}", details={"ids": missing})

                parents = {parent_id_of(kind, node) for node in found.values()}
                if len(parents) != 1:
                    raise ValidationError(f"All {LABELS[kind].lower()}s must belong to the same parent")
                parent_id = parents.pop()
                if expected_parent is not None and parent_id != expected_parent:
                    raise ValidationError(
                        f"{LABELS[kind]}s do not belong to parent {expected_parent}",
                        details={"parent_id": str(parent_id)},
                    )
                await self._authorize(db, kind, next(iter(found.values())), principal_id, "reorder")

                siblings = await self._load_scope(db, kind, parent_id)
                current = {sibling.id: sibling.order for sibling in siblings}
                self._validate_reorder(kind, pairs, current)

                moving = [(node_id, current[node_id], order) for node_id, order in pairs if current[node_id] != order]
                for node_id, old_order, _ in moving:
                    await self._move_row(db, kind, node_id, old_order, _parked(old_order))
                for node_id, old_order, order in moving:
                    await self._move_row(db, kind, node_id, _parked(old_order), order)

                logger.info(f"Reordered {len(moving)} of {len(siblings)} {kind.value}s under {parent_id}")
                return await self._fetch_siblings(db, kind, parent_id)

    async def _swap(
        self,
        db: AsyncSession,
        kind: NodeKind,
        node_id: UUID,
        node_order: int,
        other_id: UUID,
        other_order: int,
    ) -> None:
        await self._move_row(db, kind, node_id, node_order, _parked(node_order))
        await self._move_row(db, kind, other_id, other_order, node_order)
        await self._move_row(db, kind, node_id, _parked(node_order), other_order)

    async def _move_row(self, db: AsyncSession, kind: NodeKind, node_id: UUID, expected: int, order: int) -> None:
        """Set ``order`` on one row only if it still holds ``expected``."""
        model = NODE_MODELS[kind]
        result = await db.execute(
            update(model)
            .where(model.id == node_id, model.order == expected)
            .values(order=order)
            .execution_options(**_NO_SYNC)
        )
        self._expect_rows(result, 1, kind, node_id)

    async def _compact(self, db: AsyncSession, kind: NodeKind, parent_id: UUID) -> None:
        siblings = await self._fetch_siblings(db, kind, parent_id)
        moving = [(sibling.id, sibling.order, index) for index, sibling in enumerate(siblings) if sibling.order != index]
        for node_id, old_order, _ in moving:
            await self._move_row(db, kind, node_id, old_order, _parked(old_order))
        for node_id, old_order, index in moving:
            await self._move_row(db, kind, node_id, _parked(old_order), index)
        if moving:
            logger.debug(f"Compacted {len(moving)} {kind.value}s under {parent_id}")

    async def _cascade_ancestry(self, db: AsyncSession, kind: NodeKind, node_id: UUID, new_parent) -> None:
        """Recompute the denormalized ancestor ids below a reparented node."""
        element_parents = [(kind, [node_id])]
        if kind == NodeKind.SECTION_ITEM:
            await db.execute(
                update(SubSection)
                .where(SubSection.section_item_id == node_id)
                .values(section_id=new_parent.id, website_id=new_parent.website_id)
                .execution_options(**_NO_SYNC)
            )
            result = await db.execute(select(SubSection.id).where(SubSection.section_item_id == node_id))
            element_parents.append((NodeKind.SUBSECTION, list(result.scalars().all())))

        for parent_kind, parent_ids in element_parents:
            if not parent_ids:
                continue
            await db.execute(
                update(ContentElement)
                .where(
                    ContentElement.parent_kind == parent_kind,
                    ContentElement.parent_id.in_(parent_ids),
                )
                .values(website_id=new_parent.website_id)
                .execution_options(**_NO_SYNC)
            )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _ordered_kind(kind: Any) -> NodeKind:
        try:
            kind = NodeKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown node kind: {kind}")
        if kind not in ORDERED_KINDS:
            raise ValidationError(f"{LABELS[kind]}s have no sibling order")
        return kind

    @staticmethod
    def _parse_order(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("Order must be an integer", details={"order": value})
        return value

    def _normalize_updates(self, updates: Iterable[Any]) -> list[tuple[UUID, int]]:
        pairs = []
        for item in updates or []:
            if isinstance(item, dict):
                raw_id, raw_order = item.get("id"), item.get("order")
            else:
                raw_id, raw_order = getattr(item, "id", None), getattr(item, "order", None)
            pairs.append((parse_id(raw_id, "node ID"), self._parse_order(raw_order)))

        if not pairs:
            raise ValidationError("At least one order update is required")
        ids = [node_id for node_id, _ in pairs]
        if len(set(ids)) != len(ids):
            raise ValidationError("Duplicate ids in order updates")
        return pairs

    @staticmethod
    def _validate_reorder(kind: NodeKind, pairs: list[tuple[UUID, int]], current: dict[UUID, int]) -> None:
        count = len(current)
        orders = [order for _, order in pairs]

        if len(pairs) == count:
            if sorted(orders) != list(range(count)):
                raise ValidationError(
                    f"Orders must be a permutation of 0..{count - 1}",
                    details={"orders": orders},
                )
            return

        out_of_range = [order for order in orders if not 0 <= order < count]
        if out_of_range:
            raise ValidationError(
                f"Order must be between 0 and {count - 1}",
                details={"orders": out_of_range},
            )
        if len(set(orders)) != len(orders):
            raise ValidationError("Duplicate orders in order updates", details={"orders": orders})

        listed = {node_id for node_id, _ in pairs}
        taken = {order for node_id, order in current.items() if node_id not in listed}
        collisions = sorted(taken.intersection(orders))
        if collisions:
            raise ValidationError(
                f"Orders already used by other {LABELS[kind].lower()}s",
                details={"orders": collisions},
            )

    @staticmethod
    def _expect_rows(result, expected: int, kind: NodeKind, node_id: UUID) -> None:
        if result.rowcount != expected:
            raise ConflictError(
                f"{LABELS[kind]} {node_id} was modified by another process, please retry",
                details={"id": str(node_id)},
            )
