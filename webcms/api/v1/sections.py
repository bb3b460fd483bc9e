"""
Section endpoints.
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
    SetOrderRequest,
)
from webcms.schemas.tree import SectionNode, SubSectionNode

router = APIRouter(prefix="/sections", tags=["Sections"])


@router.get("/{section_id}/tree", response_model=SectionNode)
async def get_section_tree(
    section_id: str,
    assembler: Assembler,
    active_only: bool = Query(default=False),
    language_id: str | None = None,
):
    """Get a section with its items, subsections and elements."""
    tree = await assembler.section_tree(section_id, active_only, language_id)
    if tree is None:
        raise NotFoundError("Section")
    return tree


@router.get("/{section_id}/main-subsection", response_model=SubSectionNode)
async def get_section_main_subsection(
    section_id: str,
    assembler: Assembler,
    language_id: str | None = None,
):
    """Get the first active main subsection of a section in display order."""
    tree = await assembler.main_subsection(section_id=section_id, language_id=language_id)
    if tree is None:
        raise NotFoundError("Main subsection")
    return tree


@router.delete("/{section_id}", response_model=DeletionSummaryResponse)
async def delete_section(
    section_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    """Delete a section and everything below it."""
    summary = await engine.delete(NodeKind.SECTION, section_id, principal_id)
    return DeletionSummaryResponse.model_validate(summary)


@router.post("/{section_id}/deactivate", response_model=ActiveStateSummaryResponse)
async def deactivate_section(
    section_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    summary = await engine.deactivate(NodeKind.SECTION, section_id, principal_id)
    return ActiveStateSummaryResponse.model_validate(summary)


@router.post("/{section_id}/activate", response_model=ActiveStateSummaryResponse)
async def activate_section(
    section_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    summary = await engine.activate(NodeKind.SECTION, section_id, principal_id)
    return ActiveStateSummaryResponse.model_validate(summary)


@router.put("/{section_id}/order", response_model=list[OrderedNodeResponse])
async def set_section_order(
    section_id: str,
    data: SetOrderRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    """Move a section to a slot, swapping with the section holding it."""
    return await ordering.set_order(NodeKind.SECTION, section_id, data.order, principal_id=principal_id)


@router.post("/{section_id}/move", response_model=list[OrderedNodeResponse])
async def move_section(
    section_id: str,
    data: MoveRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    return await ordering.move(NodeKind.SECTION, section_id, data.direction, principal_id=principal_id)


@router.put("/{section_id}/section-items/order", response_model=list[OrderedNodeResponse])
async def bulk_reorder_section_items(
    section_id: str,
    data: BulkReorderRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    """Set the order of several items of a section at once."""
    return await ordering.bulk_reorder(NodeKind.SECTION_ITEM, data.items, parent_id=section_id, principal_id=principal_id)


@router.post("/{section_id}/section-items/reorder", response_model=list[OrderedNodeResponse])
async def reorder_section_items(
    section_id: str,
    principal_id: Principal,
    ordering: Ordering,
):
    return await ordering.reorder_all(NodeKind.SECTION_ITEM, section_id, principal_id=principal_id)
