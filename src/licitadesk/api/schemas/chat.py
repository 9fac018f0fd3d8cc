"""
Chat schemas: rooms, messages, read cursors and typing presence.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import Field

from licitadesk.core.schema_base import HTTPSchemaModel
from licitadesk.db.enums import RoomType
from licitadesk.services.mentions import mentioned_ids


class RoomRequest(HTTPSchemaModel):
    room_type: RoomType
    opportunity_id: Optional[UUID] = None
    # Staff opening a member's support room
    member_id: Optional[UUID] = None


class ChatRoomRead(HTTPSchemaModel):
    id: UUID
    room_type: RoomType
    user_id: Optional[UUID] = None
    opportunity_id: Optional[UUID] = None
    is_active: bool
    created_at: datetime
    closed_at: Optional[datetime] = None


class ChatMessageCreate(HTTPSchemaModel):
    message: str


class ChatMessageRead(HTTPSchemaModel):
    id: UUID
    room_id: UUID
    user_id: UUID
    message: str
    is_admin: bool
    sequence_number: int
    is_deleted: bool
    deleted_at: Optional[datetime] = None
    created_at: datetime
    mentions: List[str] = Field(default_factory=list)

    @classmethod
    def from_row(cls, message) -> "ChatMessageRead":
        read = cls.model_validate(message)
        read.mentions = [] if message.is_deleted else mentioned_ids(message.message)
        return read


class HistoryEntryRead(HTTPSchemaModel):
    message: ChatMessageRead
    author_name: Optional[str] = None
    author_badge: str


class ReadStateRead(HTTPSchemaModel):
    room_id: UUID
    last_read_sequence: int
    last_read_at: Optional[datetime] = None


class UnreadCountsRead(HTTPSchemaModel):
    counts: Dict[UUID, int]


class TypingUserRead(HTTPSchemaModel):
    user_id: UUID
    display_name: Optional[str] = None


class MentionSuggestion(HTTPSchemaModel):
    opportunity_id: UUID
    title: str
    insert_text: str
