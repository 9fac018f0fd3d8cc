"""
Realtime WebSocket Endpoint.

One socket per client. After authenticating with ``?token=...`` the client
sends subscribe/unsubscribe frames and receives change events as JSON:

    -> {"action": "subscribe", "channel": "room", "id": "<room id>"}
    -> {"action": "subscribe", "channel": "notifications"}
    -> {"action": "subscribe", "channel": "opportunity", "id": "<opportunity id>"}
    -> {"action": "subscribe", "channel": "ticket", "id": "<ticket id>"}
    <- {"type": "subscribed", "subscription": "<key>"}
    <- {"type": "event", "subscription": "<key>", "event": {...}}
    <- {"type": "resync", "subscription": "<key>"}   (fell behind; re-fetch)

Access to a room, opportunity or ticket is checked once at subscribe time;
accounts still awaiting authorization may only follow their notifications.
All subscriptions are released when the socket closes.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.core.database import get_websocket_session
from licitadesk.core.dependencies import get_ws_services, user_id_from_token
from licitadesk.core.exceptions import DomainError
from licitadesk.services import access_service
from licitadesk.services.access_service import Actor
from licitadesk.services.event_models import (
    CHAT_MESSAGES,
    NOTIFICATIONS,
    OPPORTUNITIES,
    TICKET_MESSAGES,
    TICKETS,
    TYPING,
)
from licitadesk.services.realtime_bus import Subscription
from licitadesk.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_ws_db():
    async for session in get_websocket_session():
        yield session


async def _resolve_channel(
    db: AsyncSession, services: ServiceRegistry, actor: Actor, channel: str, target: Optional[str]
) -> List[Tuple[str, Dict[str, str]]]:
    """(table, filter) pairs behind a channel, after the access check."""
    if channel == "notifications":
        return [(NOTIFICATIONS, {"user_id": str(actor.id)})]
    access_service.require_member_area(actor)
    if not target:
        raise ValueError("This channel needs an id")
    target_id = UUID(target)
    if channel == "room":
        room = await services.rooms.get_room(db, actor, target_id)
        return [(CHAT_MESSAGES, {"room_id": str(room.id)}), (TYPING, {"room_id": str(room.id)})]
    if channel == "opportunity":
        opportunity = await services.opportunities.get_opportunity(db, actor, target_id)
        return [(OPPORTUNITIES, {"id": str(opportunity.id)})]
    if channel == "ticket":
        ticket = await services.tickets.get_ticket(db, actor, target_id)
        return [(TICKETS, {"id": str(ticket.id)}), (TICKET_MESSAGES, {"ticket_id": str(ticket.id)})]
    raise ValueError(f"Unknown channel: {channel}")


def parse_frame(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a client frame; None unless it is a JSON object."""
    if text is None:
        return None
    try:
        frame = json.loads(text)
    except ValueError:
        return None
    return frame if isinstance(frame, dict) else None


def _log_relay_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning(f"Realtime relay stopped: {type(exc).__name__}: {exc}")


async def _relay(websocket: WebSocket, key: str, subscription: Subscription) -> None:
    async for event in subscription:
        await websocket.send_json({"type": "event", "subscription": key, "event": event.to_dict()})
    if subscription.overflowed:
        await websocket.send_json({"type": "resync", "subscription": key})


@router.websocket("/ws")
async def realtime_socket(
    websocket: WebSocket,
    token: str = Query(...),
    db: AsyncSession = Depends(get_ws_db),
    services: ServiceRegistry = Depends(get_ws_services),
):
    try:
        actor = await services.access.load_actor(db, user_id_from_token(token))
    except DomainError as e:
        logger.info(f"Realtime socket refused: {e.detail}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info(f"Realtime socket opened for {actor.id}")

    subscriptions: Dict[str, List[Subscription]] = {}
    relays: Dict[str, List[asyncio.Task]] = {}

    def release(key: str) -> None:
        for subscription in subscriptions.pop(key, []):
            subscription.close()
        for task in relays.pop(key, []):
            task.cancel()

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
            frame = parse_frame(message.get("text"))
            if frame is None:
                await websocket.send_json({"type": "error", "detail": "Frames must be JSON objects"})
                continue
            action = frame.get("action")
            channel = frame.get("channel") or ""
            target = frame.get("id")
            key = f"{channel}:{target}" if target else channel

            if action == "unsubscribe":
                release(key)
                await websocket.send_json({"type": "unsubscribed", "subscription": key})
                continue
            if action != "subscribe":
                await websocket.send_json({"type": "error", "detail": f"Unknown action: {action}"})
                continue

            try:
                pairs = await _resolve_channel(db, services, actor, channel, target)
            except DomainError as e:
                await websocket.send_json({"type": "error", "subscription": key, **e.to_dict()})
                continue
            except ValueError as e:
                await websocket.send_json({"type": "error", "subscription": key, "detail": str(e)})
                continue
            finally:
                # Keep no transaction open between frames
                await db.rollback()

            release(key)
            subscriptions[key] = [services.bus.subscribe(table, filters) for table, filters in pairs]
            relays[key] = [
                asyncio.create_task(_relay(websocket, key, subscription))
                for subscription in subscriptions[key]
            ]
            for task in relays[key]:
                task.add_done_callback(_log_relay_failure)
            await websocket.send_json({"type": "subscribed", "subscription": key})

    except WebSocketDisconnect:
        logger.info(f"Realtime socket closed by {actor.id}")
    finally:
        for key in list(subscriptions):
            release(key)
