"""
Chat room resolution and access.

Three kinds of room share one table: the single lobby, one support room per
member, and one room per opportunity. At most one room of each scope is
active at a time; partial unique indexes enforce that, and creation is a
get-or-create that falls back to re-reading the winner when a concurrent
first access inserted the room first.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from licitadesk.core.decorators import transactional_database_operation
from licitadesk.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from licitadesk.crud import ChatRoomCRUD, OpportunityCRUD, ProfileCRUD
from licitadesk.db.enums import RoomType
from licitadesk.db.models import ChatRoom, utcnow
from .access_service import Actor
from .event_models import CHAT_ROOMS, ChangeAction, record_of
from .realtime_bus import RealtimeBus

logger = logging.getLogger(__name__)


class ChatRoomService:
    def __init__(self, session_factory: async_sessionmaker, bus: RealtimeBus):
        self.session_factory = session_factory
        self.bus = bus

    # ==================== Access ====================

    async def check_access(self, db: AsyncSession, actor: Actor, room: ChatRoom) -> None:
        """Raise unless the actor may read and write in the room."""
        if actor.is_admin:
            return
        room_type = RoomType(room.room_type)
        if room_type == RoomType.LOBBY:
            return
        if room_type == RoomType.SUPPORT:
            if room.user_id != actor.id:
                raise AuthorizationError("This support conversation belongs to another member")
            return
        opportunity = await OpportunityCRUD.find_by_id(db, room.opportunity_id)
        if (
            opportunity is None
            or not opportunity.is_published
            or opportunity.organization_id != actor.organization_id
        ):
            raise AuthorizationError("This opportunity does not belong to your organization")

    async def get_room(self, db: AsyncSession, actor: Actor, room_id: UUID) -> ChatRoom:
        room = await ChatRoomCRUD.find_by_id(db, room_id)
        if room is None:
            raise NotFoundError("Chat room not found")
        await self.check_access(db, actor, room)
        return room

    async def list_accessible_rooms(self, db: AsyncSession, actor: Actor) -> List[ChatRoom]:
        rooms = await ChatRoomCRUD.list_active(db)
        if actor.is_admin:
            return rooms
        accessible = []
        for room in rooms:
            try:
                await self.check_access(db, actor, room)
            except AuthorizationError:
                continue
            accessible.append(room)
        return accessible

    # ==================== Resolution ====================

    async def get_or_create_room(
        self,
        db: AsyncSession,
        actor: Actor,
        room_type: RoomType,
        *,
        opportunity_id: Optional[UUID] = None,
        member_id: Optional[UUID] = None,
    ) -> ChatRoom:
        """
        The active room of a scope, created on first access.

        ``member_id`` lets staff open a member's support room; members always
        get their own.
        """
        scope_user_id: Optional[UUID] = None
        if room_type == RoomType.SUPPORT:
            scope_user_id = actor.id
            if member_id is not None and member_id != actor.id:
                if not actor.is_admin:
                    raise AuthorizationError("Only staff can open another member's support room")
                if await ProfileCRUD.find_by_id(db, member_id) is None:
                    raise NotFoundError("Member not found")
                scope_user_id = member_id
        elif room_type == RoomType.OPPORTUNITY:
            if opportunity_id is None:
                raise ValidationError("An opportunity room needs an opportunity")
            opportunity = await OpportunityCRUD.find_by_id(db, opportunity_id)
            if opportunity is None:
                raise NotFoundError("Opportunity not found")
            if not actor.is_admin and (
                not opportunity.is_published or opportunity.organization_id != actor.organization_id
            ):
                raise AuthorizationError("This opportunity does not belong to your organization")

        room = await ChatRoomCRUD.find_active(
            db, room_type, user_id=scope_user_id, opportunity_id=opportunity_id
        )
        if room is not None:
            return room

        created = await self._try_create(room_type, scope_user_id or actor.id, opportunity_id)
        room = await ChatRoomCRUD.find_active(
            db, room_type, user_id=scope_user_id, opportunity_id=opportunity_id
        )
        if room is None:
            raise NotFoundError("Chat room could not be resolved")
        if created:
            await self.bus.publish(CHAT_ROOMS, ChangeAction.INSERT, record_of(room))
        return room

    async def _try_create(
        self, room_type: RoomType, user_id: UUID, opportunity_id: Optional[UUID]
    ) -> bool:
        """
        Insert in an isolated session; False when a concurrent insert won.

        The caller's session is never rolled back by a lost race.
        """
        async with self.session_factory() as session:
            session.add(
                ChatRoom(
                    room_type=room_type.value,
                    user_id=user_id,
                    opportunity_id=opportunity_id if room_type == RoomType.OPPORTUNITY else None,
                    is_active=True,
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(
                    f"Concurrent creation of {room_type.value} room "
                    f"(user={user_id}, opportunity={opportunity_id}); using the existing one"
                )
                return False
        logger.info(f"Created {room_type.value} room (user={user_id}, opportunity={opportunity_id})")
        return True

    async def close_room(self, db: AsyncSession, actor: Actor, room_id: UUID) -> ChatRoom:
        """Deactivate a room; the next access creates a fresh one."""
        room = await self._close_tx(db, actor, room_id)
        await self.bus.publish(CHAT_ROOMS, ChangeAction.UPDATE, record_of(room))
        return room

    @transactional_database_operation("close_chat_room")
    async def _close_tx(self, db: AsyncSession, actor: Actor, room_id: UUID) -> ChatRoom:
        if not actor.is_admin:
            raise AuthorizationError("Only staff can close a chat room")
        room = await ChatRoomCRUD.find_by_id(db, room_id, for_update=True)
        if room is None:
            raise NotFoundError("Chat room not found")
        if room.is_active:
            room.is_active = False
            room.closed_at = utcnow()
            db.add(room)
            logger.info(f"Chat room {room.id} closed by {actor.id}")
        return room
