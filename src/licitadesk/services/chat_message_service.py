"""
Chat messages: send, delete, history, read cursors and typing.

Messages in a room carry a per-room ``sequence_number`` assigned under the
room's channel lock, and the realtime event is published before that lock
is released, so subscribers of one room see inserts in commit order.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from minio.error import S3Error
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from urllib3.exceptions import MaxRetryError

from licitadesk.core.config import settings
from licitadesk.core.decorators import (
    handle_database_exceptions,
    log_database_operation,
    transactional_database_operation,
)
from licitadesk.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    UploadError,
    ValidationError,
)
from licitadesk.crud import (
    ChatMessageCRUD,
    ChatReadStateCRUD,
    OpportunityCRUD,
)
from licitadesk.db.enums import NotificationType, RoomType
from licitadesk.db.models import ChatMessage, ChatReadState, ChatRoom, Opportunity, Profile, utcnow
from .access_service import Actor
from .chat_room_service import ChatRoomService
from .event_models import CHAT_MESSAGES, ChangeAction, record_of
from .minio_service import MinIOStorageService
from .notification_service import NotificationDispatcher, NotificationService
from .realtime_bus import RealtimeBus
from .typing_tracker import TypingTracker

logger = logging.getLogger(__name__)

SEQUENCE_RETRIES = 3
ATTACHMENT_ROOMS = frozenset({RoomType.SUPPORT, RoomType.OPPORTUNITY})

BADGE_SUPPORT = "Suporte"
BADGE_SUBSCRIBER = "Assinante"
BADGE_TRIAL = "Novato"
BADGE_MEMBER = "Membro"


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class HistoryEntry:
    message: ChatMessage
    author_name: Optional[str]
    author_badge: str


def author_badge(message: ChatMessage, author: Optional[Profile]) -> str:
    """
    Category shown next to a message.

    Read from the author's current profile, so the badge of old messages
    follows later subscription changes.
    """
    if message.is_admin:
        return BADGE_SUPPORT
    if author is not None and author.subscription_active:
        return BADGE_SUBSCRIBER
    if author is not None and author.trial_active:
        return BADGE_TRIAL
    return BADGE_MEMBER


def attachment_reference(text: str, filename: str, url: str) -> str:
    reference = f"📎 Anexo: {filename}\n{url}"
    return f"{text}\n\n{reference}" if text else reference


def attachment_key(room_id: UUID, filename: str, now: datetime) -> str:
    ext = Path(filename).suffix.lower().lstrip(".") or "bin"
    return f"chat/{room_id}/{int(now.timestamp() * 1000)}.{ext}"


class ChatMessageService:
    def __init__(
        self,
        bus: RealtimeBus,
        rooms: ChatRoomService,
        notifications: NotificationService,
        dispatcher: NotificationDispatcher,
        storage: MinIOStorageService,
        typing: TypingTracker,
    ):
        self.bus = bus
        self.rooms = rooms
        self.notifications = notifications
        self.dispatcher = dispatcher
        self.storage = storage
        self.typing = typing

    # ==================== Sending ====================

    async def send_message(
        self,
        db: AsyncSession,
        actor: Actor,
        room_id: UUID,
        body: str,
        attachment: Optional[Attachment] = None,
    ) -> ChatMessage:
        text = (body or "").strip()
        if not text and attachment is None:
            raise ValidationError("The message cannot be empty")
        if len(text) > settings.workflow.max_message_length:
            raise ValidationError(
                f"Messages are limited to {settings.workflow.max_message_length} characters"
            )

        room = await self.rooms.get_room(db, actor, room_id)
        if not room.is_active:
            raise ValidationError("This conversation is closed")
        room_type = RoomType(room.room_type)

        if attachment is not None:
            if room_type not in ATTACHMENT_ROOMS:
                raise ValidationError("Attachments are not allowed in the lobby")
            text = await self._upload(room.id, text, attachment)

        async with self.bus.channel_lock(f"chat:{room.id}"):
            message = await self._insert_with_sequence(db, actor, room.id, text)
            await self.bus.publish(CHAT_MESSAGES, ChangeAction.INSERT, record_of(message))

        await self.typing.stop(room.id, actor.id)
        await self._notify_new_message(db, actor, room, message)
        return message

    async def _upload(self, room_id: UUID, text: str, attachment: Attachment) -> str:
        """Store the file and return the body with the attachment reference appended."""
        key = attachment_key(room_id, attachment.filename, utcnow())
        try:
            await self.storage.upload_file(key, attachment.content, attachment.content_type)
            url = await self.storage.generate_presigned_url(
                key, settings.minio.chat_attachment_url_ttl_seconds
            )
        except (S3Error, MaxRetryError, OSError) as e:
            logger.error(f"Attachment upload failed for room {room_id}: {type(e).__name__}: {e}")
            raise UploadError("The attachment could not be uploaded; the message was not sent") from e
        return attachment_reference(text, attachment.filename, url)

    async def _insert_with_sequence(
        self, db: AsyncSession, actor: Actor, room_id: UUID, text: str
    ) -> ChatMessage:
        for attempt in range(1, SEQUENCE_RETRIES + 1):
            try:
                return await self._insert_tx(db, actor, room_id, text)
            except IntegrityError:
                # Another instance took the sequence number
                if attempt == SEQUENCE_RETRIES:
                    raise
                logger.warning(f"Sequence collision in room {room_id}, retrying ({attempt})")
        raise RuntimeError("unreachable")

    @transactional_database_operation("insert_chat_message")
    async def _insert_tx(self, db: AsyncSession, actor: Actor, room_id: UUID, text: str) -> ChatMessage:
        sequence = await ChatMessageCRUD.max_sequence(db, room_id) + 1
        now = utcnow()
        return await ChatMessageCRUD.create(
            db,
            obj_in={
                "room_id": room_id,
                "user_id": actor.id,
                "message": text,
                "is_admin": actor.is_admin,
                "sequence_number": sequence,
                "created_at": now,
                "updated_at": now,
            },
        )

    async def _notify_new_message(
        self, db: AsyncSession, actor: Actor, room: ChatRoom, message: ChatMessage
    ) -> None:
        room_type = RoomType(room.room_type)
        if room_type == RoomType.LOBBY:
            return
        preview = message.message[:120]

        if room_type == RoomType.SUPPORT:
            if message.is_admin:
                if room.user_id is not None and room.user_id != actor.id:
                    await self.dispatcher.notify(
                        room.user_id,
                        NotificationType.CHAT_MESSAGE,
                        "Nova mensagem do suporte",
                        preview,
                        reference_id=room.id,
                    )
            else:
                await self.dispatcher.notify_admins(
                    NotificationType.CHAT_MESSAGE,
                    f"Suporte: {actor.display_name}",
                    preview,
                    reference_id=room.id,
                    exclude_user_id=actor.id,
                )
            return

        opportunity = await OpportunityCRUD.find_by_id(db, room.opportunity_id)
        title = opportunity.title if opportunity else "Oportunidade"
        if message.is_admin:
            if opportunity is not None:
                await self.dispatcher.notify_organization(
                    opportunity.organization_id,
                    NotificationType.CHAT_MESSAGE,
                    f"Nova mensagem: {title}",
                    preview,
                    reference_id=room.id,
                    exclude_user_id=actor.id,
                )
        else:
            await self.dispatcher.notify_admins(
                NotificationType.CHAT_MESSAGE,
                f"{actor.display_name} em {title}",
                preview,
                reference_id=room.id,
                exclude_user_id=actor.id,
            )

    # ==================== Deleting ====================

    async def delete_message(self, db: AsyncSession, actor: Actor, message_id: UUID) -> Optional[ChatMessage]:
        """
        Lobby messages are soft-deleted by their author or staff, and staff get
        the original text. Support and opportunity messages are hard-deleted by
        staff; None is returned for those.
        """
        message = await ChatMessageCRUD.find_by_id(db, message_id)
        if message is None:
            raise NotFoundError("Message not found")
        room = await self.rooms.get_room(db, actor, message.room_id)

        async with self.bus.channel_lock(f"chat:{room.id}"):
            if RoomType(room.room_type) == RoomType.LOBBY:
                message, original = await self._soft_delete_tx(db, actor, message_id)
                await self.bus.publish(CHAT_MESSAGES, ChangeAction.UPDATE, record_of(message))
            else:
                record = await self._hard_delete_tx(db, actor, message_id)
                await self.bus.publish(CHAT_MESSAGES, ChangeAction.DELETE, record)
                return None

        if original is not None:
            await self.dispatcher.notify_admins(
                NotificationType.MESSAGE_DELETED,
                "Mensagem removida do lobby",
                f"{actor.display_name} removeu: {original}",
                reference_id=room.id,
                exclude_user_id=actor.id,
            )
        return message

    @transactional_database_operation("soft_delete_chat_message")
    async def _soft_delete_tx(
        self, db: AsyncSession, actor: Actor, message_id: UUID
    ) -> Tuple[ChatMessage, Optional[str]]:
        message = await ChatMessageCRUD.find_by_id(db, message_id, for_update=True)
        if message is None:
            raise NotFoundError("Message not found")
        if not actor.is_admin and message.user_id != actor.id:
            raise AuthorizationError("You can only delete your own messages")
        if message.is_deleted:
            return message, None

        original = message.message
        now = utcnow()
        message.message = settings.workflow.lobby_deletion_marker
        message.is_deleted = True
        message.deleted_at = now
        message.updated_at = now
        db.add(message)
        logger.info(f"Lobby message {message.id} soft-deleted by {actor.id}")
        return message, original

    @transactional_database_operation("hard_delete_chat_message")
    async def _hard_delete_tx(self, db: AsyncSession, actor: Actor, message_id: UUID) -> dict:
        if not actor.is_admin:
            raise AuthorizationError("Only staff can delete messages in this conversation")
        message = await ChatMessageCRUD.find_by_id(db, message_id, for_update=True)
        if message is None:
            raise NotFoundError("Message not found")
        record = record_of(message)
        await ChatMessageCRUD.delete(db, message)
        logger.info(f"Chat message {message_id} deleted by {actor.id}")
        return record

    # ==================== Reading ====================

    async def list_history(
        self,
        db: AsyncSession,
        actor: Actor,
        room_id: UUID,
        *,
        limit: Optional[int] = None,
        before_sequence: Optional[int] = None,
    ) -> List[HistoryEntry]:
        room = await self.rooms.get_room(db, actor, room_id)
        rows = await ChatMessageCRUD.history_with_authors(
            db,
            room.id,
            limit=limit or settings.workflow.history_page_size,
            before_sequence=before_sequence,
        )
        return [
            HistoryEntry(
                message=message,
                author_name=(author.full_name or author.email) if author else None,
                author_badge=author_badge(message, author),
            )
            for message, author in rows
        ]

    async def mark_room_read(
        self, db: AsyncSession, actor: Actor, room_id: UUID, *, now: Optional[datetime] = None
    ) -> ChatReadState:
        """Advance the read cursor to the newest message and clear the room's notices."""
        now = now or utcnow()
        room = await self.rooms.get_room(db, actor, room_id)
        cursor = await self._advance_cursor_tx(db, actor, room.id, now)
        await self.notifications.clear_by_reference(db, actor.id, room.id, now)
        return cursor

    @transactional_database_operation("advance_chat_read_cursor")
    async def _advance_cursor_tx(
        self, db: AsyncSession, actor: Actor, room_id: UUID, now: datetime
    ) -> ChatReadState:
        latest = await ChatMessageCRUD.max_sequence(db, room_id)
        cursor = await ChatReadStateCRUD.find_cursor(db, actor.id, room_id)
        if cursor is None:
            cursor = ChatReadState(user_id=actor.id, room_id=room_id, created_at=now)
        cursor.last_read_sequence = max(cursor.last_read_sequence or 0, latest)
        cursor.last_read_at = now
        cursor.updated_at = now
        db.add(cursor)
        await db.flush()
        return cursor

    @handle_database_exceptions("chat_unread_counts")
    @log_database_operation("chat unread counts", level="debug")
    async def unread_counts(
        self, db: AsyncSession, actor: Actor, room_ids: Optional[List[UUID]] = None
    ) -> Dict[UUID, int]:
        if room_ids is None:
            room_ids = [room.id for room in await self.rooms.list_accessible_rooms(db, actor)]
        else:
            for room_id in room_ids:
                await self.rooms.get_room(db, actor, room_id)
        return await ChatMessageCRUD.unread_counts(db, actor.id, room_ids)

    async def suggest_mentions(
        self, db: AsyncSession, actor: Actor, query: str, limit: int = 5
    ) -> List[Opportunity]:
        """Published opportunities whose title contains ``query``."""
        return await OpportunityCRUD.search_published_titles(
            db,
            (query or "").strip(),
            organization_id=None if actor.is_admin else actor.organization_id,
            limit=limit,
        )

    # ==================== Typing ====================

    async def start_typing(self, db: AsyncSession, actor: Actor, room_id: UUID) -> None:
        await self.rooms.get_room(db, actor, room_id)
        await self.typing.start(room_id, actor.id, actor.display_name)

    async def stop_typing(self, actor: Actor, room_id: UUID) -> None:
        await self.typing.stop(room_id, actor.id)

    async def typing_users(self, db: AsyncSession, actor: Actor, room_id: UUID) -> List[Tuple[str, Optional[str]]]:
        await self.rooms.get_room(db, actor, room_id)
        return [
            (user_id, name)
            for user_id, name in await self.typing.typing_users(room_id)
            if user_id != str(actor.id)
        ]
