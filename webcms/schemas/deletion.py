"""
Cascade delete and activate/deactivate result schemas.
"""
from uuid import UUID

from webcms.models.node import NodeKind
from webcms.schemas.common import BaseSchema


class DeletionSummaryResponse(BaseSchema):
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
    assets_scheduled: int = 0


class ActiveStateSummaryResponse(BaseSchema):
    root_kind: NodeKind
    root_id: UUID
    is_active: bool
    sections: int = 0
    section_items: int = 0
    subsections: int = 0
    content_elements: int = 0
    content_translations: int = 0
    promoted_main_id: UUID | None = None
