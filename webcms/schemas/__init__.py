"""
Pydantic schemas for API request/response validation.
"""
from webcms.schemas.common import (
    BaseSchema,
    ErrorResponse,
    IDSchema,
    TimestampSchema,
)
from webcms.schemas.tree import (
    ContentElementNode,
    SectionItemNode,
    SectionNode,
    SubSectionNode,
    WebsiteNode,
)
from webcms.schemas.ordering import (
    BulkReorderRequest,
    Direction,
    MoveRequest,
    OrderedNodeResponse,
    OrderUpdate,
    ReparentRequest,
    SetOrderRequest,
)
from webcms.schemas.deletion import ActiveStateSummaryResponse, DeletionSummaryResponse

__all__ = [
    "BaseSchema",
    "ErrorResponse",
    "IDSchema",
    "TimestampSchema",
    "ContentElementNode",
    "SectionItemNode",
    "SectionNode",
    "SubSectionNode",
    "WebsiteNode",
    "BulkReorderRequest",
    "Direction",
    "MoveRequest",
    "OrderedNodeResponse",
    "OrderUpdate",
    "ReparentRequest",
    "SetOrderRequest",
    "ActiveStateSummaryResponse",
    "DeletionSummaryResponse",
]
