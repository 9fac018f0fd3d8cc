"""
Notification schemas for API responses.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from licitadesk.core.schema_base import HTTPSchemaModel
from licitadesk.db.enums import NotificationType


class NotificationRead(HTTPSchemaModel):
    id: UUID
    type: NotificationType
    title: str
    message: str
    reference_id: Optional[UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListRead(HTTPSchemaModel):
    notifications: List[NotificationRead] = Field(default_factory=list)
    unread_count: int = 0


class MarkReadRequest(HTTPSchemaModel):
    notification_ids: Optional[List[UUID]] = Field(
        None, description="Notices to mark; all unread ones when omitted"
    )


class MarkReadResponse(HTTPSchemaModel):
    marked_count: int
