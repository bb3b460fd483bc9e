"""
Ordering request and response schemas.
"""
from enum import Enum as PyEnum
from uuid import UUID

from pydantic import Field

from webcms.schemas.common import BaseSchema


class Direction(str, PyEnum):
    UP = "up"
    DOWN = "down"


class OrderUpdate(BaseSchema):
    id: UUID
    order: int


class SetOrderRequest(BaseSchema):
    order: int


class BulkReorderRequest(BaseSchema):
    items: list[OrderUpdate] = Field(min_length=1)


class MoveRequest(BaseSchema):
    direction: Direction


class ReparentRequest(BaseSchema):
    parent_id: UUID


class OrderedNodeResponse(BaseSchema):
    """Position of a node among its siblings."""

    id: UUID
    order: int
    is_active: bool
