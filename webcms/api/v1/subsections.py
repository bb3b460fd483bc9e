"""
Subsection endpoints.
"""
from fastapi import APIRouter, Query

from webcms.core.deps import Assembler, DeletionEngine, Ordering, Principal
from webcms.core.exceptions import NotFoundError
from webcms.models import NodeKind
from webcms.schemas.deletion import ActiveStateSummaryResponse, DeletionSummaryResponse
from webcms.schemas.ordering import (
    MoveRequest,
    OrderedNodeResponse,
    ReparentRequest,
    SetOrderRequest,
)
from webcms.schemas.tree import SubSectionNode

router = APIRouter(prefix="/subsections", tags=["Subsections"])


@router.get("/by-slug/{slug}/tree", response_model=SubSectionNode)
async def get_subsection_tree_by_slug(
    slug: str,
    assembler: Assembler,
    active_only: bool = Query(default=False),
    language_id: str | None = None,
):
    """Get a subsection with its elements by its slug."""
    tree = await assembler.subsection_tree_by_slug(slug, active_only, language_id)
    if tree is None:
        raise NotFoundError("Subsection")
    return tree


@router.get("/{subsection_id}/tree", response_model=SubSectionNode)
async def get_subsection_tree(
    subsection_id: str,
    assembler: Assembler,
    active_only: bool = Query(default=False),
    language_id: str | None = None,
):
    """Get a subsection with its elements."""
    tree = await assembler.subsection_tree(subsection_id, active_only, language_id)
    if tree is None:
        raise NotFoundError("Subsection")
    return tree


@router.delete("/{subsection_id}", response_model=DeletionSummaryResponse)
async def delete_subsection(
    subsection_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    summary = await engine.delete(NodeKind.SUBSECTION, subsection_id, principal_id)
    return DeletionSummaryResponse.model_validate(summary)


@router.post("/{subsection_id}/deactivate", response_model=ActiveStateSummaryResponse)
async def deactivate_subsection(
    subsection_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    summary = await engine.deactivate(NodeKind.SUBSECTION, subsection_id, principal_id)
    return ActiveStateSummaryResponse.model_validate(summary)


@router.post("/{subsection_id}/activate", response_model=ActiveStateSummaryResponse)
async def activate_subsection(
    subsection_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    summary = await engine.activate(NodeKind.SUBSECTION, subsection_id, principal_id)
    return ActiveStateSummaryResponse.model_validate(summary)


@router.put("/{subsection_id}/order", response_model=list[OrderedNodeResponse])
async def set_subsection_order(
    subsection_id: str,
    data: SetOrderRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    return await ordering.set_order(NodeKind.SUBSECTION, subsection_id, data.order, principal_id=principal_id)


@router.post("/{subsection_id}/move", response_model=list[OrderedNodeResponse])
async def move_subsection(
    subsection_id: str,
    data: MoveRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    return await ordering.move(NodeKind.SUBSECTION, subsection_id, data.direction, principal_id=principal_id)


@router.post("/{subsection_id}/reparent", response_model=OrderedNodeResponse)
async def reparent_subsection(
    subsection_id: str,
    data: ReparentRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    """Move a subsection to the end of another section item of the same website."""
    return await ordering.reparent(NodeKind.SUBSECTION, subsection_id, data.parent_id, principal_id=principal_id)


@router.post("/{subsection_id}/main", response_model=OrderedNodeResponse)
async def set_main_subsection(
    subsection_id: str,
    principal_id: Principal,
    ordering: Ordering,
):
    """Make this the main subsection of its section item."""
    return await ordering.set_main(subsection_id, principal_id=principal_id)
