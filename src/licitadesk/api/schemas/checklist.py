"""
Opportunity checklist schemas.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import Field

from licitadesk.core.schema_base import HTTPSchemaModel


class ChecklistItemCreate(HTTPSchemaModel):
    label: str = Field(..., max_length=500)
    order_index: Optional[int] = None


class ChecklistToggle(HTTPSchemaModel):
    completed: Optional[bool] = None


class ChecklistItemRead(HTTPSchemaModel):
    id: UUID
    opportunity_id: UUID
    label: str
    order_index: int


class ChecklistEntryRead(HTTPSchemaModel):
    item: ChecklistItemRead
    completed: bool


class ChecklistProgressRead(HTTPSchemaModel):
    entries: List[ChecklistEntryRead]
    total: int
    completed: int
    ratio: float


class ChecklistStatusRead(HTTPSchemaModel):
    checklist_item_id: UUID
    is_completed: bool
