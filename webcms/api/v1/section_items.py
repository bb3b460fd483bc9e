"""
Section item endpoints.
"""
from fastapi import APIRouter, Query

from webcms.core.deps import Assembler, DeletionEngine, Ordering, Principal
from webcms.core.exceptions import NotFoundError
from webcms.models import NodeKind
from webcms.schemas.deletion import ActiveStateSummaryResponse, DeletionSummaryResponse
from webcms.schemas.ordering import (
    BulkReorderRequest,
    MoveRequest,
    OrderedNodeResponse,
    ReparentRequest,
    SetOrderRequest,
)
from webcms.schemas.tree import SectionItemNode, SubSectionNode

router = APIRouter(prefix="/section-items", tags=["Section Items"])


@router.get("/{section_item_id}/tree", response_model=SectionItemNode)
async def get_section_item_tree(
    section_item_id: str,
    assembler: Assembler,
    active_only: bool = Query(default=False),
    language_id: str | None = None,
):
    """Get a section item with its subsections and elements."""
    tree = await assembler.section_item_tree(section_item_id, active_only, language_id)
    if tree is None:
        raise NotFoundError("Section item")
    return tree


@router.get("/{section_item_id}/main-subsection", response_model=SubSectionNode)
async def get_section_item_main_subsection(
    section_item_id: str,
    assembler: Assembler,
    language_id: str | None = None,
):
    """Get the active main subsection of a section item."""
    tree = await assembler.main_subsection(section_item_id=section_item_id, language_id=language_id)
    if tree is None:
        raise NotFoundError("Main subsection")
    return tree


@router.delete("/{section_item_id}", response_model=DeletionSummaryResponse)
async def delete_section_item(
    section_item_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    summary = await engine.delete(NodeKind.SECTION_ITEM, section_item_id, principal_id)
    return DeletionSummaryResponse.model_validate(summary)


@router.post("/{section_item_id}/deactivate", response_model=ActiveStateSummaryResponse)
async def deactivate_section_item(
    section_item_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    summary = await engine.deactivate(NodeKind.SECTION_ITEM, section_item_id, principal_id)
    return ActiveStateSummaryResponse.model_validate(summary)


@router.post("/{section_item_id}/activate", response_model=ActiveStateSummaryResponse)
async def activate_section_item(
    section_item_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    summary = await engine.activate(NodeKind.SECTION_ITEM, section_item_id, principal_id)
    return ActiveStateSummaryResponse.model_validate(summary)


@router.put("/{section_item_id}/order", response_model=list[OrderedNodeResponse])
async def set_section_item_order(
    section_item_id: str,
    data: SetOrderRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    return await ordering.set_order(NodeKind.SECTION_ITEM, section_item_id, data.order, principal_id=principal_id)


@router.post("/{section_item_id}/move", response_model=list[OrderedNodeResponse])
async def move_section_item(
    section_item_id: str,
    data: MoveRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    return await ordering.move(NodeKind.SECTION_ITEM, section_item_id, data.direction, principal_id=principal_id)


@router.post("/{section_item_id}/reparent", response_model=OrderedNodeResponse)
async def reparent_section_item(
    section_item_id: str,
    data: ReparentRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    """Move a section item to the end of another section of the same website."""
    return await ordering.reparent(NodeKind.SECTION_ITEM, section_item_id, data.parent_id, principal_id=principal_id)


@router.put("/{section_item_id}/subsections/order", response_model=list[OrderedNodeResponse])
async def bulk_reorder_subsections(
    section_item_id: str,
    data: BulkReorderRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    return await ordering.bulk_reorder(NodeKind.SUBSECTION, data.items, parent_id=section_item_id, principal_id=principal_id)


@router.post("/{section_item_id}/subsections/reorder", response_model=list[OrderedNodeResponse])
async def reorder_subsections(
    section_item_id: str,
    principal_id: Principal,
    ordering: Ordering,
):
    """Renumber the subsections of a section item as 0..n-1."""
    return await ordering.reorder_all(NodeKind.SUBSECTION, section_item_id, principal_id=principal_id)
