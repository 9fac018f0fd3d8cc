"""
Chat Endpoints.

Room resolution, message history, sending (with an optional attachment),
deletion, read cursors, typing presence and mention suggestions. Live
updates are delivered over the realtime WebSocket, not by polling these.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.api.schemas.chat import (
    ChatMessageCreate,
    ChatMessageRead,
    ChatRoomRead,
    HistoryEntryRead,
    MentionSuggestion,
    ReadStateRead,
    RoomRequest,
    TypingUserRead,
    UnreadCountsRead,
)
from licitadesk.core.dependencies import (
    get_db,
    get_services,
    require_admin,
    require_member_area,
)
from licitadesk.services.access_service import Actor
from licitadesk.services.chat_message_service import Attachment
from licitadesk.services.mentions import active_mention_query, format_mention
from licitadesk.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Rooms
# ============================================================================


@router.get("/rooms", response_model=List[ChatRoomRead])
async def list_rooms(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.rooms.list_accessible_rooms(db, actor)


@router.post("/rooms", response_model=ChatRoomRead)
async def get_or_create_room(
    payload: RoomRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    """
    Find the active room of the requested kind, creating it on first contact.

    Concurrent first requests converge on the same room.
    """
    return await services.rooms.get_or_create_room(
        db,
        actor,
        payload.room_type,
        opportunity_id=payload.opportunity_id,
        member_id=payload.member_id,
    )


@router.post("/rooms/{room_id}/close", response_model=ChatRoomRead)
async def close_room(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.rooms.close_room(db, actor, room_id)


# ============================================================================
# Messages
# ============================================================================


@router.get("/rooms/{room_id}/messages", response_model=List[HistoryEntryRead])
async def list_history(
    room_id: UUID,
    limit: Optional[int] = Query(None, ge=1, le=500),
    before_sequence: Optional[int] = Query(None, ge=1),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    """Messages in commit order, each with its author's current badge."""
    entries = await services.messages.list_history(
        db, actor, room_id, limit=limit, before_sequence=before_sequence
    )
    return [
        HistoryEntryRead(
            message=ChatMessageRead.from_row(entry.message),
            author_name=entry.author_name,
            author_badge=entry.author_badge,
        )
        for entry in entries
    ]


@router.post(
    "/rooms/{room_id}/messages",
    response_model=ChatMessageRead,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    room_id: UUID,
    payload: ChatMessageCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    message = await services.messages.send_message(db, actor, room_id, payload.message)
    return ChatMessageRead.from_row(message)


@router.post(
    "/rooms/{room_id}/attachments",
    response_model=ChatMessageRead,
    status_code=status.HTTP_201_CREATED,
)
async def send_attachment(
    room_id: UUID,
    file: UploadFile = File(...),
    message: str = Form(""),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    """
    Send a message carrying a file.

    The file is uploaded first; if the upload fails nothing is written.
    """
    attachment = Attachment(
        filename=file.filename or "anexo",
        content=await file.read(),
        content_type=file.content_type or "application/octet-stream",
    )
    row = await services.messages.send_message(db, actor, room_id, message, attachment)
    return ChatMessageRead.from_row(row)


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    """
    Delete a message.

    Lobby messages are blanked and returned; elsewhere the row is removed
    and the response has no body.
    """
    message = await services.messages.delete_message(db, actor, message_id)
    if message is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return ChatMessageRead.from_row(message).model_dump(mode="json", by_alias=True)


# ============================================================================
# Read cursors
# ============================================================================


@router.post("/rooms/{room_id}/read", response_model=ReadStateRead)
async def mark_room_read(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.messages.mark_room_read(db, actor, room_id)


@router.get("/unread", response_model=UnreadCountsRead)
async def unread_counts(
    room_ids: Optional[List[UUID]] = Query(None, alias="roomId"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    counts = await services.messages.unread_counts(db, actor, room_ids)
    return UnreadCountsRead(counts=counts)


# ============================================================================
# Typing and mentions
# ============================================================================


@router.post("/rooms/{room_id}/typing", status_code=status.HTTP_204_NO_CONTENT)
async def start_typing(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    """Keystroke ping; the indicator clears by itself after the typing window."""
    await services.messages.start_typing(db, actor, room_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/rooms/{room_id}/typing", status_code=status.HTTP_204_NO_CONTENT)
async def stop_typing(
    room_id: UUID,
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    await services.messages.stop_typing(actor, room_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/rooms/{room_id}/typing", response_model=List[TypingUserRead])
async def typing_users(
    room_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    users = await services.messages.typing_users(db, actor, room_id)
    return [TypingUserRead(user_id=UUID(user_id), display_name=name) for user_id, name in users]


@router.get("/mentions", response_model=List[MentionSuggestion])
async def suggest_mentions(
    body: str = "",
    cursor: Optional[int] = Query(None, ge=0),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    """Suggestions for the unfinished ``@`` mention at the cursor, if any."""
    query = active_mention_query(body, cursor)
    if query is None:
        return []
    opportunities = await services.messages.suggest_mentions(db, actor, query)
    return [
        MentionSuggestion(
            opportunity_id=opportunity.id,
            title=opportunity.title,
            insert_text=format_mention(opportunity.title, str(opportunity.id)),
        )
        for opportunity in opportunities
    ]
