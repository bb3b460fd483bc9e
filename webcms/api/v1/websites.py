"""
Website endpoints: tree reads, cascade delete and section ordering.
"""
from fastapi import APIRouter, Query

from webcms.core.deps import Assembler, DeletionEngine, Ordering, Principal
from webcms.core.exceptions import NotFoundError
from webcms.models import NodeKind
from webcms.schemas.deletion import ActiveStateSummaryResponse, DeletionSummaryResponse
from webcms.schemas.ordering import BulkReorderRequest, OrderedNodeResponse
from webcms.schemas.tree import SectionNode, SubSectionNode, WebsiteNode

router = APIRouter(prefix="/websites", tags=["Websites"])


@router.get("/{website_id}/tree", response_model=WebsiteNode)
async def get_website_tree(
    website_id: str,
    assembler: Assembler,
    active_only: bool = Query(default=False),
    language_id: str | None = None,
):
    """Get the full content tree of a website."""
    tree = await assembler.website_tree(website_id, active_only, language_id)
    if tree is None:
        raise NotFoundError("Website")
    return tree


@router.get("/{website_id}/sections", response_model=list[SectionNode])
async def list_website_sections(
    website_id: str,
    assembler: Assembler,
    active_only: bool = Query(default=False),
    language_id: str | None = None,
):
    """Get the section trees of a website in display order."""
    sections = await assembler.sections_for_website(website_id, active_only, language_id)
    if sections is None:
        raise NotFoundError("Website")
    return sections


@router.get("/{website_id}/main-subsection", response_model=SubSectionNode)
async def get_website_main_subsection(
    website_id: str,
    assembler: Assembler,
    language_id: str | None = None,
):
    """Get the first active main subsection of a website in display order."""
    tree = await assembler.main_subsection(website_id=website_id, language_id=language_id)
    if tree is None:
        raise NotFoundError("Main subsection")
    return tree


@router.delete("/{website_id}", response_model=DeletionSummaryResponse)
async def delete_website(
    website_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    """Delete a website with all of its content. Owners only."""
    summary = await engine.delete(NodeKind.WEBSITE, website_id, principal_id)
    return DeletionSummaryResponse.model_validate(summary)


@router.post("/{website_id}/deactivate", response_model=ActiveStateSummaryResponse)
async def deactivate_website(
    website_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    """Deactivate every section and element of a website."""
    summary = await engine.deactivate(NodeKind.WEBSITE, website_id, principal_id)
    return ActiveStateSummaryResponse.model_validate(summary)


@router.post("/{website_id}/activate", response_model=ActiveStateSummaryResponse)
async def activate_website(
    website_id: str,
    principal_id: Principal,
    engine: DeletionEngine,
):
    """Reactivate every section and element of a website."""
    summary = await engine.activate(NodeKind.WEBSITE, website_id, principal_id)
    return ActiveStateSummaryResponse.model_validate(summary)


@router.put("/{website_id}/sections/order", response_model=list[OrderedNodeResponse])
async def bulk_reorder_sections(
    website_id: str,
    data: BulkReorderRequest,
    principal_id: Principal,
    ordering: Ordering,
):
    """Set the order of several sections at once."""
    return await ordering.bulk_reorder(NodeKind.SECTION, data.items, parent_id=website_id, principal_id=principal_id)


@router.post("/{website_id}/sections/reorder", response_model=list[OrderedNodeResponse])
async def reorder_sections(
    website_id: str,
    principal_id: Principal,
    ordering: Ordering,
):
    """Renumber the sections of a website as 0..n-1."""
    return await ordering.reorder_all(NodeKind.SECTION, website_id, principal_id=principal_id)
