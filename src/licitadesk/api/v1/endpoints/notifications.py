"""
Notification Endpoints.

The bell menu: list, badge count and mark-as-read. New notices also arrive
live over the realtime WebSocket.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.api.schemas.notification import (
    MarkReadRequest,
    MarkReadResponse,
    NotificationListRead,
    NotificationRead,
)
from licitadesk.core.dependencies import get_current_actor, get_db, get_services
from licitadesk.services.access_service import Actor
from licitadesk.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=NotificationListRead)
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    services: ServiceRegistry = Depends(get_services),
):
    """Newest first, with the unread badge count."""
    notifications = await services.notifications.list_for_user(
        db, actor.id, unread_only=unread_only, limit=limit
    )
    unread = await services.notifications.unread_count(db, actor.id)
    return NotificationListRead(
        notifications=[NotificationRead.model_validate(row) for row in notifications],
        unread_count=unread,
    )


@router.get("/count")
async def unread_count(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    services: ServiceRegistry = Depends(get_services),
):
    return {"count": await services.notifications.unread_count(db, actor.id)}


@router.post("/read", response_model=MarkReadResponse)
async def mark_read(
    payload: MarkReadRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    services: ServiceRegistry = Depends(get_services),
):
    """Mark the listed notices, or every unread one when no ids are sent."""
    marked = await services.notifications.mark_read(db, actor.id, payload.notification_ids)
    logger.debug(f"[NOTIFICATIONS] {marked} marked read for {actor.id}")
    return MarkReadResponse(marked_count=marked)
