"""
Unit tests for the Ordering Maintainer.

Tests sibling ordering including:
- Swapping set_order and move with boundary no-ops
- Bulk reorder validation (permutation, subset, scope)
- Dense renumbering, reparenting and main subsection
- Compare-and-set conflicts between concurrent writers
"""
import asyncio
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from webcms.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from webcms.models import Base, ContentElement, NodeKind, Section, SectionItem, SubSection
from webcms.schemas.ordering import OrderUpdate
from webcms.services.ordering import OrderingMaintainer
from tests.fixtures.content_tree import EDITOR_ID, OWNER_ID, STRANGER_ID, USER_ID, build_content_tree
from tests.fixtures.tables import orders


async def section_orders(session_factory, tree) -> list:
    """Section ids of the website sorted by order."""
    async with session_factory() as session:
        current = await orders(session, Section, Section.website_id, tree.website_id)
    return sorted(current, key=current.get)


def assert_dense(current: dict) -> None:
    assert sorted(current.values()) == list(range(len(current)))


class TestSetOrder:
    """Test single node order changes."""

    @pytest.mark.asyncio
    async def test_swaps_with_occupant(self, ordering, session_factory, content_tree):
        s0, s1, s2 = content_tree.sections

        result = await ordering.set_order(NodeKind.SECTION, s0, 2, principal_id=EDITOR_ID)

        assert [node.id for node in result] == [s2, s1, s0]
        assert [node.order for node in result] == [0, 1, 2]
        assert await section_orders(session_factory, content_tree) == [s2, s1, s0]

    @pytest.mark.asyncio
    async def test_same_order_is_noop(self, ordering, session_factory, content_tree):
        result = await ordering.set_order(NodeKind.SECTION, content_tree.sections[1], 1, principal_id=EDITOR_ID)

        assert [node.id for node in result] == content_tree.sections

    @pytest.mark.asyncio
    @pytest.mark.parametrize("new_order", [-1, 3, 10])
    async def test_out_of_range(self, ordering, session_factory, content_tree, new_order):
        with pytest.raises(ValidationError):
            await ordering.set_order(NodeKind.SECTION, content_tree.sections[0], new_order, principal_id=EDITOR_ID)

        assert await section_orders(session_factory, content_tree) == content_tree.sections

    @pytest.mark.asyncio
    @pytest.mark.parametrize("new_order", ["1", 1.5, True, None])
    async def test_order_must_be_integer(self, ordering, content_tree, new_order):
        with pytest.raises(ValidationError):
            await ordering.set_order(NodeKind.SECTION, content_tree.sections[0], new_order, principal_id=EDITOR_ID)

    @pytest.mark.asyncio
    async def test_websites_are_not_ordered(self, ordering, content_tree):
        with pytest.raises(ValidationError):
            await ordering.set_order(NodeKind.WEBSITE, content_tree.website_id, 0, principal_id=EDITOR_ID)

    @pytest.mark.asyncio
    async def test_unknown_node(self, ordering, content_tree):
        with pytest.raises(NotFoundError):
            await ordering.set_order(NodeKind.SECTION, "00000000-0000-0000-0000-000000000000", 0, principal_id=EDITOR_ID)

    @pytest.mark.asyncio
    async def test_malformed_id(self, ordering, content_tree):
        with pytest.raises(ValidationError):
            await ordering.set_order(NodeKind.SECTION, "section-1", 0, principal_id=EDITOR_ID)

    @pytest.mark.asyncio
    async def test_subsection_scope(self, ordering, session_factory, content_tree):
        """Only siblings under the same section item are affected."""
        item0, item1 = content_tree.items[content_tree.sections[0]]
        sub0, sub1 = content_tree.subsections[item0]

        await ordering.set_order(NodeKind.SUBSECTION, sub1, 0, principal_id=EDITOR_ID)

        async with session_factory() as session:
            moved = await orders(session, SubSection, SubSection.section_item_id, item0)
            untouched = await orders(session, SubSection, SubSection.section_item_id, item1)
        assert moved == {sub0: 1, sub1: 0}
        assert sorted(untouched.values()) == [0, 1]


class TestMove:
    """Test moving a node one slot up or down."""

    @pytest.mark.asyncio
    async def test_move_down(self, ordering, content_tree):
        s0, s1, s2 = content_tree.sections

        result = await ordering.move(NodeKind.SECTION, s0, "down", principal_id=EDITOR_ID)

        assert [node.id for node in result] == [s1, s0, s2]

    @pytest.mark.asyncio
    async def test_move_up(self, ordering, content_tree):
        item0, item1 = content_tree.items[content_tree.sections[1]]

        result = await ordering.move(NodeKind.SECTION_ITEM, item1, "up", principal_id=EDITOR_ID)

        assert [node.id for node in result] == [item1, item0]
        assert [node.order for node in result] == [0, 1]

    @pytest.mark.asyncio
    async def test_boundaries_are_noops(self, ordering, session_factory, content_tree):
        s0, s1, s2 = content_tree.sections

        await ordering.move(NodeKind.SECTION, s0, "up", principal_id=EDITOR_ID)
        await ordering.move(NodeKind.SECTION, s2, "down", principal_id=EDITOR_ID)

        assert await section_orders(session_factory, content_tree) == [s0, s1, s2]

    @pytest.mark.asyncio
    async def test_invalid_direction(self, ordering, content_tree):
        with pytest.raises(ValidationError):
            await ordering.move(NodeKind.SECTION, content_tree.sections[0], "left", principal_id=EDITOR_ID)


class TestBulkReorder:
    """Test batched order updates."""

    @pytest.mark.asyncio
    async def test_full_permutation(self, ordering, session_factory, content_tree):
        s0, s1, s2 = content_tree.sections

        result = await ordering.bulk_reorder(
            NodeKind.SECTION,
            [{"id": str(s0), "order": 2}, {"id": str(s1), "order": 0}, {"id": str(s2), "order": 1}],
            principal_id=EDITOR_ID,
        )

        assert [node.id for node in result] == [s1, s2, s0]
        assert await section_orders(session_factory, content_tree) == [s1, s2, s0]

    @pytest.mark.asyncio
    async def test_accepts_schema_items(self, ordering, content_tree):
        s0, s1, _ = content_tree.sections

        result = await ordering.bulk_reorder(
            NodeKind.SECTION,
            [OrderUpdate(id=s0, order=1), OrderUpdate(id=s1, order=0)],
            parent_id=content_tree.website_id,
            principal_id=EDITOR_ID,
        )

        assert [node.id for node in result][:2] == [s1, s0]

    @pytest.mark.asyncio
    async def test_full_list_must_be_permutation(self, ordering, session_factory, content_tree):
        s0, s1, s2 = content_tree.sections

        with pytest.raises(ValidationError):
            await ordering.bulk_reorder(
                NodeKind.SECTION,
                [{"id": s0, "order": 0}, {"id": s1, "order": 0}, {"id": s2, "order": 1}],
                principal_id=EDITOR_ID,
            )

        assert await section_orders(session_factory, content_tree) == [s0, s1, s2]

    @pytest.mark.asyncio
    async def test_subset_collision_with_unlisted(self, ordering, content_tree):
        s0, _, _ = content_tree.sections

        with pytest.raises(ValidationError):
            await ordering.bulk_reorder(NodeKind.SECTION, [{"id": s0, "order": 2}], principal_id=EDITOR_ID)

    @pytest.mark.asyncio
    async def test_subset_out_of_range(self, ordering, content_tree):
        s0, s1, _ = content_tree.sections

        with pytest.raises(ValidationError):
            await ordering.bulk_reorder(
                NodeKind.SECTION,
                [{"id": s0, "order": 1}, {"id": s1, "order": 3}],
                principal_id=EDITOR_ID,
            )

    @pytest.mark.asyncio
    async def test_subset_duplicate_orders(self, ordering, content_tree):
        s0, s1, _ = content_tree.sections

        with pytest.raises(ValidationError):
            await ordering.bulk_reorder(
                NodeKind.SECTION,
                [{"id": s0, "order": 1}, {"id": s1, "order": 1}],
                principal_id=EDITOR_ID,
            )

    @pytest.mark.asyncio
    async def test_empty_and_duplicate_ids(self, ordering, content_tree):
        s0 = content_tree.sections[0]

        with pytest.raises(ValidationError):
            await ordering.bulk_reorder(NodeKind.SECTION, [], principal_id=EDITOR_ID)
        with pytest.raises(ValidationError):
            await ordering.bulk_reorder(
                NodeKind.SECTION,
                [{"id": s0, "order": 0}, {"id": s0, "order": 1}],
                principal_id=EDITOR_ID,
            )

    @pytest.mark.asyncio
    async def test_unknown_id(self, ordering, content_tree):
        with pytest.raises(NotFoundError):
            await ordering.bulk_reorder(
                NodeKind.SECTION,
                [{"id": "00000000-0000-0000-0000-000000000000", "order": 0}],
                principal_id=EDITOR_ID,
            )

    @pytest.mark.asyncio
    async def test_mixed_parents(self, ordering, content_tree):
        item_a = content_tree.items[content_tree.sections[0]][0]
        item_b = content_tree.items[content_tree.sections[1]][0]

        with pytest.raises(ValidationError):
            await ordering.bulk_reorder(
                NodeKind.SECTION_ITEM,
                [{"id": item_a, "order": 1}, {"id": item_b, "order": 0}],
                principal_id=EDITOR_ID,
            )

    @pytest.mark.asyncio
    async def test_wrong_parent(self, ordering, content_tree):
        item0, item1 = content_tree.items[content_tree.sections[0]]

        with pytest.raises(ValidationError):
            await ordering.bulk_reorder(
                NodeKind.SECTION_ITEM,
                [{"id": item0, "order": 1}, {"id": item1, "order": 0}],
                parent_id=content_tree.sections[1],
                principal_id=EDITOR_ID,
            )

    @pytest.mark.asyncio
    async def test_conflict_retried(self, session_factory, content_tree):
        """Conflicts are retried up to the configured number of times."""
        s0, s1, _ = content_tree.sections
        maintainer = OrderingMaintainer(session_factory, conflict_retries=2)
        updates = [{"id": s0, "order": 1}, {"id": s1, "order": 0}]

        with patch("webcms.services.ordering.asyncio.sleep", new=AsyncMock()) as sleep:
            maintainer._bulk_reorder_once = AsyncMock(side_effect=ConflictError("busy"))
            with pytest.raises(ConflictError):
                await maintainer.bulk_reorder(NodeKind.SECTION, updates, principal_id=EDITOR_ID)
            assert maintainer._bulk_reorder_once.await_count == 3
            assert sleep.await_count == 2

            maintainer._bulk_reorder_once = AsyncMock(side_effect=[ConflictError("busy"), ["reordered"]])
            assert await maintainer.bulk_reorder(NodeKind.SECTION, updates, principal_id=EDITOR_ID) == ["reordered"]
            assert maintainer._bulk_reorder_once.await_count == 2


class TestReorderAll:
    """Test dense renumbering."""

    @pytest.mark.asyncio
    async def test_closes_gaps_keeping_sequence(self, ordering, session_factory, content_tree):
        s0, s1, s2 = content_tree.sections
        async with session_factory() as session:
            for section_id, order in ((s2, 9), (s1, 7), (s0, 3)):
                await session.execute(
                    update(Section).where(Section.id == section_id).values(order=order)
                )
            await session.commit()

        result = await ordering.reorder_all(NodeKind.SECTION, content_tree.website_id, principal_id=EDITOR_ID)

        assert [node.id for node in result] == [s0, s1, s2]
        assert [node.order for node in result] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_unknown_parent(self, ordering, content_tree):
        with pytest.raises(NotFoundError):
            await ordering.reorder_all(NodeKind.SECTION_ITEM, "00000000-0000-0000-0000-000000000000", principal_id=EDITOR_ID)


class TestReparent:
    """Test moving nodes to another parent."""

    @pytest.mark.asyncio
    async def test_subsection_to_other_item(self, ordering, session_factory, content_tree):
        section_id = content_tree.sections[0]
        item0, item1 = content_tree.items[section_id]
        sub0, sub1 = content_tree.subsections[item0]

        node = await ordering.reparent(NodeKind.SUBSECTION, sub0, item1, principal_id=EDITOR_ID)

        assert node.section_item_id == item1
        assert node.order == 2
        async with session_factory() as session:
            assert await orders(session, SubSection, SubSection.section_item_id, item0) == {sub1: 0}
            assert_dense(await orders(session, SubSection, SubSection.section_item_id, item1))

    @pytest.mark.asyncio
    async def test_item_to_other_section(self, ordering, session_factory, content_tree):
        s0, s1, _ = content_tree.sections
        item0, item1 = content_tree.items[s0]

        node = await ordering.reparent(NodeKind.SECTION_ITEM, item0, s1, principal_id=EDITOR_ID)

        assert node.section_id == s1
        assert node.order == 2
        async with session_factory() as session:
            assert await orders(session, SectionItem, SectionItem.section_id, s0) == {item1: 0}
            result = await session.execute(
                select(SubSection.section_id).where(SubSection.section_item_id == item0)
            )
            assert set(result.scalars().all()) == {s1}

    @pytest.mark.asyncio
    async def test_same_parent_is_noop(self, ordering, content_tree):
        item0 = content_tree.items[content_tree.sections[0]][0]
        sub0 = content_tree.subsections[item0][0]

        node = await ordering.reparent(NodeKind.SUBSECTION, sub0, item0, principal_id=EDITOR_ID)

        assert node.order == 0

    @pytest.mark.asyncio
    async def test_other_website_rejected(self, ordering, session_factory, content_tree):
        async with session_factory() as session:
            other = await build_content_tree(session, name="Beta")
        item0 = content_tree.items[content_tree.sections[0]][0]

        with pytest.raises(ValidationError):
            await ordering.reparent(NodeKind.SECTION_ITEM, item0, other.sections[0], principal_id=EDITOR_ID)

    @pytest.mark.asyncio
    async def test_sections_cannot_be_reparented(self, ordering, content_tree):
        with pytest.raises(ValidationError):
            await ordering.reparent(NodeKind.SECTION, content_tree.sections[0], content_tree.website_id, principal_id=EDITOR_ID)

    @pytest.mark.asyncio
    async def test_elements_keep_website(self, ordering, session_factory, content_tree):
        item0 = content_tree.items[content_tree.sections[0]][0]
        item1 = content_tree.items[content_tree.sections[1]][0]
        sub0 = content_tree.subsections[item0][0]

        await ordering.reparent(NodeKind.SUBSECTION, sub0, item1, principal_id=EDITOR_ID)

        async with session_factory() as session:
            result = await session.execute(
                select(ContentElement.website_id).where(ContentElement.parent_id == sub0)
            )
            assert set(result.scalars().all()) == {content_tree.website_id}


class TestSetMain:
    """Test main subsection selection."""

    @pytest.mark.asyncio
    async def test_single_main_per_item(self, ordering, session_factory, content_tree):
        item0 = content_tree.items[content_tree.sections[0]][0]
        sub0, sub1 = content_tree.subsections[item0]

        node = await ordering.set_main(sub1, principal_id=EDITOR_ID)

        assert node.is_main is True
        async with session_factory() as session:
            result = await session.execute(
                select(SubSection.id, SubSection.is_main).where(SubSection.section_item_id == item0)
            )
            assert dict(result.all()) == {sub0: False, sub1: True}


class TestAuthorization:
    """Test that ordering writes need an editor role on the website."""

    @pytest.mark.asyncio
    async def test_owner_can_reorder(self, ordering, content_tree):
        s0, s1, s2 = content_tree.sections

        result = await ordering.set_order(NodeKind.SECTION, s2, 0, principal_id=OWNER_ID)

        assert [node.id for node in result] == [s2, s1, s0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("principal_id", [USER_ID, STRANGER_ID])
    async def test_set_order_rejected(self, ordering, session_factory, content_tree, principal_id):
        with pytest.raises(AuthorizationError):
            await ordering.set_order(NodeKind.SECTION, content_tree.sections[0], 2, principal_id=principal_id)

        assert await section_orders(session_factory, content_tree) == content_tree.sections

    @pytest.mark.asyncio
    async def test_bulk_reorder_rejected(self, ordering, session_factory, content_tree):
        s0, s1, s2 = content_tree.sections

        with pytest.raises(AuthorizationError):
            await ordering.bulk_reorder(
                NodeKind.SECTION,
                [{"id": s0, "order": 2}, {"id": s1, "order": 0}, {"id": s2, "order": 1}],
                principal_id=STRANGER_ID,
            )

        assert await section_orders(session_factory, content_tree) == [s0, s1, s2]

    @pytest.mark.asyncio
    async def test_move_and_reorder_all_rejected(self, ordering, session_factory, content_tree):
        item0, item1 = content_tree.items[content_tree.sections[0]]

        with pytest.raises(AuthorizationError):
            await ordering.move(NodeKind.SECTION_ITEM, item0, "down", principal_id=USER_ID)
        with pytest.raises(AuthorizationError):
            await ordering.reorder_all(NodeKind.SECTION, content_tree.website_id, principal_id=USER_ID)

        async with session_factory() as session:
            current = await orders(session, SectionItem, SectionItem.section_id, content_tree.sections[0])
        assert current == {item0: 0, item1: 1}

    @pytest.mark.asyncio
    async def test_reparent_and_set_main_rejected(self, ordering, session_factory, content_tree):
        item0, item1 = content_tree.items[content_tree.sections[0]]
        sub0, sub1 = content_tree.subsections[item0]

        with pytest.raises(AuthorizationError):
            await ordering.reparent(NodeKind.SUBSECTION, sub0, item1, principal_id=USER_ID)
        with pytest.raises(AuthorizationError):
            await ordering.set_main(sub1, principal_id=USER_ID)

        async with session_factory() as session:
            result = await session.execute(
                select(SubSection.id, SubSection.is_main).where(SubSection.section_item_id == item0)
            )
            assert dict(result.all()) == {sub0: True, sub1: False}

    @pytest.mark.asyncio
    async def test_malformed_principal(self, ordering, content_tree):
        with pytest.raises(ValidationError):
            await ordering.set_order(NodeKind.SECTION, content_tree.sections[0], 1, principal_id="nobody")


class TestOrderInvariant:
    """Test that orders stay a permutation of 0..n-1."""

    @pytest.mark.asyncio
    async def test_dense_after_mixed_operations(self, ordering, session_factory, content_tree):
        s0, s1, s2 = content_tree.sections

        await ordering.set_order(NodeKind.SECTION, s2, 0, principal_id=EDITOR_ID)
        await ordering.move(NodeKind.SECTION, s0, "down", principal_id=EDITOR_ID)
        await ordering.bulk_reorder(NodeKind.SECTION, [{"id": s1, "order": 0}, {"id": s2, "order": 1}], principal_id=EDITOR_ID)
        await ordering.move(NodeKind.SECTION, s1, "up", principal_id=EDITOR_ID)

        async with session_factory() as session:
            assert_dense(await orders(session, Section, Section.website_id, content_tree.website_id))

    @pytest.mark.asyncio
    async def test_unique_violation_is_conflict(self, session_factory, content_tree):
        """A slot taken after the scope was read surfaces as ConflictError."""
        s0, s1, s2 = content_tree.sections
        async with session_factory() as session:
            await session.execute(update(Section).where(Section.id == s2).values(order=5))
            await session.commit()

        maintainer = OrderingMaintainer(session_factory)

        async def stale_scope(db, kind, parent_id):
            siblings = await OrderingMaintainer._load_scope(maintainer, db, kind, parent_id)
            async with session_factory() as other:
                await other.execute(update(Section).where(Section.id == s1).values(order=2))
                await other.commit()
            return siblings

        maintainer._load_scope = stale_scope

        with pytest.raises(ConflictError):
            await maintainer.set_order(NodeKind.SECTION, s0, 2, principal_id=EDITOR_ID)

        async with session_factory() as session:
            current = await orders(session, Section, Section.website_id, content_tree.website_id)
        assert current == {s0: 0, s1: 2, s2: 5}


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Session factory on a file database so two sessions use two connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ordering.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


class TestConcurrentWriters:
    """Test two writers that read the same scope before either writes."""

    @pytest.mark.asyncio
    async def test_second_writer_conflicts(self, file_session_factory):
        async with file_session_factory() as session:
            tree = await build_content_tree(session)
        s0, s1, s2 = tree.sections

        first = OrderingMaintainer(file_session_factory)
        second = OrderingMaintainer(file_session_factory)
        first_read, second_read, first_done = asyncio.Event(), asyncio.Event(), asyncio.Event()

        async def first_scope(db, kind, parent_id):
            siblings = await OrderingMaintainer._load_scope(first, db, kind, parent_id)
            first_read.set()
            await second_read.wait()
            return siblings

        async def second_scope(db, kind, parent_id):
            await first_read.wait()
            siblings = await OrderingMaintainer._load_scope(second, db, kind, parent_id)
            second_read.set()
            await first_done.wait()
            return siblings

        first._load_scope = first_scope
        second._load_scope = second_scope

        first_task = asyncio.create_task(first.set_order(NodeKind.SECTION, s0, 1, principal_id=EDITOR_ID))
        second_task = asyncio.create_task(second.set_order(NodeKind.SECTION, s0, 2, principal_id=EDITOR_ID))

        await first_task
        first_done.set()
        with pytest.raises(ConflictError):
            await second_task

        async with file_session_factory() as session:
            current = await orders(session, Section, Section.website_id, tree.website_id)
        assert current == {s0: 1, s1: 0, s2: 2}

    @pytest.mark.asyncio
    async def test_two_siblings_claim_same_slot(self, file_session_factory):
        """Two sections moved to slot 0 at once: one wins, the other conflicts."""
        async with file_session_factory() as session:
            tree = await build_content_tree(session)
        s0, s1, s2 = tree.sections

        first = OrderingMaintainer(file_session_factory)
        second = OrderingMaintainer(file_session_factory)
        first_read, second_read, first_done = asyncio.Event(), asyncio.Event(), asyncio.Event()

        async def first_scope(db, kind, parent_id):
            siblings = await OrderingMaintainer._load_scope(first, db, kind, parent_id)
            first_read.set()
            await second_read.wait()
            return siblings

        async def second_scope(db, kind, parent_id):
            await first_read.wait()
            siblings = await OrderingMaintainer._load_scope(second, db, kind, parent_id)
            second_read.set()
            await first_done.wait()
            return siblings

        first._load_scope = first_scope
        second._load_scope = second_scope

        first_task = asyncio.create_task(first.set_order(NodeKind.SECTION, s1, 0, principal_id=EDITOR_ID))
        second_task = asyncio.create_task(second.set_order(NodeKind.SECTION, s2, 0, principal_id=EDITOR_ID))

        winners = await first_task
        first_done.set()
        with pytest.raises(ConflictError):
            await second_task

        assert [node.id for node in winners] == [s1, s0, s2]
        async with file_session_factory() as session:
            current = await orders(session, Section, Section.website_id, tree.website_id)
        assert current == {s0: 1, s1: 0, s2: 2}
        assert_dense(current)
