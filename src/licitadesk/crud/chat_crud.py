"""
Repositories for chat rooms, messages and read cursors.
"""
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.db.enums import RoomType
from licitadesk.db.models import ChatMessage, ChatReadState, ChatRoom, Profile
from .base_repository import BaseCRUD


class ChatRoomCRUD(BaseCRUD[ChatRoom]):
    model = ChatRoom

    @classmethod
    async def find_active(
        cls,
        db: AsyncSession,
        room_type: RoomType,
        *,
        user_id: Optional[UUID] = None,
        opportunity_id: Optional[UUID] = None,
    ) -> Optional[ChatRoom]:
        """Locate the active room for a kind and its scope key."""
        stmt = select(ChatRoom).where(
            ChatRoom.room_type == room_type.value,
            ChatRoom.is_active.is_(True),
        )
        if room_type == RoomType.SUPPORT:
            stmt = stmt.where(ChatRoom.user_id == user_id)
        elif room_type == RoomType.OPPORTUNITY:
            stmt = stmt.where(ChatRoom.opportunity_id == opportunity_id)
        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    @classmethod
    async def list_active(
        cls, db: AsyncSession, *, room_type: Optional[RoomType] = None
    ) -> List[ChatRoom]:
        stmt = select(ChatRoom).where(ChatRoom.is_active.is_(True))
        if room_type:
            stmt = stmt.where(ChatRoom.room_type == room_type.value)
        result = await db.execute(stmt.order_by(ChatRoom.created_at))
        return list(result.scalars().all())


class ChatMessageCRUD(BaseCRUD[ChatMessage]):
    model = ChatMessage

    @classmethod
    async def max_sequence(cls, db: AsyncSession, room_id: UUID) -> int:
        result = await db.execute(
            select(func.max(ChatMessage.sequence_number)).where(ChatMessage.room_id == room_id)
        )
        return int(result.scalar() or 0)

    @classmethod
    async def history_with_authors(
        cls,
        db: AsyncSession,
        room_id: UUID,
        *,
        limit: int = 100,
        before_sequence: Optional[int] = None,
    ) -> List[Tuple[ChatMessage, Optional[Profile]]]:
        """
        Messages in commit order joined with the author's live profile.

        The newest ``limit`` messages (older than ``before_sequence`` when
        given) are returned oldest-first.
        """
        stmt = (
            select(ChatMessage, Profile)
            .join(Profile, Profile.id == ChatMessage.user_id, isouter=True)
            .where(ChatMessage.room_id == room_id)
        )
        if before_sequence is not None:
            stmt = stmt.where(ChatMessage.sequence_number < before_sequence)
        stmt = stmt.order_by(ChatMessage.sequence_number.desc()).limit(limit)
        result = await db.execute(stmt)
        rows = [(message, profile) for message, profile in result.all()]
        rows.reverse()
        return rows

    @classmethod
    async def unread_counts(
        cls, db: AsyncSession, user_id: UUID, room_ids: List[UUID]
    ) -> Dict[UUID, int]:
        """Messages past the user's cursor, excluding the user's own."""
        if not room_ids:
            return {}
        stmt = (
            select(ChatMessage.room_id, func.count(ChatMessage.id))
            .select_from(ChatMessage)
            .join(
                ChatReadState,
                and_(
                    ChatReadState.room_id == ChatMessage.room_id,
                    ChatReadState.user_id == user_id,
                ),
                isouter=True,
            )
            .where(
                ChatMessage.room_id.in_(room_ids),
                ChatMessage.user_id != user_id,
                ChatMessage.is_deleted.is_(False),
                ChatMessage.sequence_number > func.coalesce(ChatReadState.last_read_sequence, 0),
            )
            .group_by(ChatMessage.room_id)
        )
        result = await db.execute(stmt)
        counts = {room_id: 0 for room_id in room_ids}
        counts.update({room_id: int(count) for room_id, count in result.all()})
        return counts


class ChatReadStateCRUD(BaseCRUD[ChatReadState]):
    model = ChatReadState

    @classmethod
    async def find_cursor(
        cls, db: AsyncSession, user_id: UUID, room_id: UUID
    ) -> Optional[ChatReadState]:
        return await cls.find_one(db, filters={"user_id": user_id, "room_id": room_id})
