"""
Ticket schemas for API validation and serialization.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field

from licitadesk.core.schema_base import HTTPSchemaModel
from licitadesk.db.enums import TicketPriority, TicketStatus


class TicketCreate(HTTPSchemaModel):
    title: str = Field(..., max_length=255)
    description: str
    service_category: Optional[str] = Field(None, max_length=100)
    priority: TicketPriority = TicketPriority.MEDIUM
    deadline: Optional[date] = None
    opportunity_id: Optional[UUID] = None
    attachment_url: Optional[str] = Field(None, max_length=1000)
    # Staff only: open the ticket for a member
    on_behalf_of: Optional[UUID] = None


class TicketStatusUpdate(HTTPSchemaModel):
    status: TicketStatus
    expected_version: Optional[int] = None


class TicketRead(HTTPSchemaModel):
    id: UUID
    user_id: UUID
    opportunity_id: Optional[UUID] = None
    title: str
    description: str
    status: TicketStatus
    priority: TicketPriority
    deadline: Optional[date] = None
    service_category: Optional[str] = None
    service_price: Optional[str] = None
    attachment_url: Optional[str] = None
    is_archived: bool
    version: int
    status_changed_at: datetime
    created_at: datetime
    updated_at: datetime


class TicketMessageCreate(HTTPSchemaModel):
    message: str


class TicketMessageRead(HTTPSchemaModel):
    id: UUID
    ticket_id: UUID
    user_id: UUID
    message: str
    is_admin: bool
    created_at: datetime


class TicketEventRead(HTTPSchemaModel):
    id: UUID
    ticket_id: UUID
    user_id: Optional[UUID] = None
    event_type: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    event_metadata: Optional[Dict[str, Any]] = Field(None, serialization_alias="metadata")
    created_at: datetime


class ServiceCategoryRead(HTTPSchemaModel):
    id: str
    service: str
    description: str
    price: str
    success_fee: str
    upgradeable: bool


class ServiceGroupRead(HTTPSchemaModel):
    group: str
    categories: List[ServiceCategoryRead]
