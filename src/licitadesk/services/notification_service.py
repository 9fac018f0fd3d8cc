"""
Notification service.

Notices are persisted first, then announced on the realtime bus so an open
bell menu refreshes. ``NotificationDispatcher`` is what workflow services
call after their own transaction committed: it runs in its own session, and
a failure there is logged and swallowed so it can never undo or block the
transition that triggered it.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from licitadesk.core.decorators import (
    handle_database_exceptions,
    log_database_operation,
    transactional_database_operation,
)
from licitadesk.crud import NotificationCRUD, ProfileCRUD
from licitadesk.db.enums import NotificationType
from licitadesk.db.models import Notification, utcnow
from .event_models import NOTIFICATIONS, ChangeAction, record_of
from .realtime_bus import RealtimeBus

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, bus: RealtimeBus):
        self.bus = bus

    # ==================== Dispatch ====================

    async def notify(
        self,
        db: AsyncSession,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        reference_id: Optional[UUID] = None,
    ) -> Notification:
        rows = await self.notify_users(db, [user_id], type, title, message, reference_id)
        return rows[0]

    async def notify_users(
        self,
        db: AsyncSession,
        user_ids: Iterable[UUID],
        type: NotificationType,
        title: str,
        message: str,
        reference_id: Optional[UUID] = None,
    ) -> List[Notification]:
        rows = await self._insert(db, list(user_ids), type, title, message, reference_id)
        for row in rows:
            await self.bus.publish(NOTIFICATIONS, ChangeAction.INSERT, record_of(row))
        return rows

    async def notify_organization(
        self,
        db: AsyncSession,
        organization_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        reference_id: Optional[UUID] = None,
        exclude_user_id: Optional[UUID] = None,
    ) -> List[Notification]:
        """One notice per member profile of the organization."""
        member_ids = await ProfileCRUD.organization_member_ids(db, organization_id)
        targets = [user_id for user_id in member_ids if user_id != exclude_user_id]
        return await self.notify_users(db, targets, type, title, message, reference_id)

    async def notify_admins(
        self,
        db: AsyncSession,
        type: NotificationType,
        title: str,
        message: str,
        reference_id: Optional[UUID] = None,
        exclude_user_id: Optional[UUID] = None,
    ) -> List[Notification]:
        admin_ids = await ProfileCRUD.admin_ids(db)
        targets = [user_id for user_id in admin_ids if user_id != exclude_user_id]
        return await self.notify_users(db, targets, type, title, message, reference_id)

    @transactional_database_operation("insert_notifications")
    async def _insert(
        self,
        db: AsyncSession,
        user_ids: List[UUID],
        type: NotificationType,
        title: str,
        message: str,
        reference_id: Optional[UUID],
    ) -> List[Notification]:
        if not user_ids:
            return []
        rows = await NotificationCRUD.bulk_create(
            db,
            user_ids=user_ids,
            type=type.value,
            title=title,
            message=message,
            reference_id=reference_id,
        )
        logger.info(
            f"[NOTIFICATION] Created {len(rows)} {type.value} notice(s), reference_id={reference_id}"
        )
        return rows

    # ==================== Reading & clearing ====================

    @transactional_database_operation("clear_notifications_by_reference")
    async def clear_by_reference(
        self,
        db: AsyncSession,
        user_id: UUID,
        reference_id: UUID,
        now: Optional[datetime] = None,
    ) -> int:
        """Mark every unread notice of the user pointing at ``reference_id`` as read."""
        count = await NotificationCRUD.mark_read_by_reference(
            db, user_id, reference_id, now or utcnow()
        )
        if count:
            logger.debug(f"[NOTIFICATION] Cleared {count} notice(s) for {user_id} on {reference_id}")
        return count

    @handle_database_exceptions("list_notifications")
    @log_database_operation("notification listing", level="debug")
    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: UUID,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Notification]:
        return await NotificationCRUD.list_for_user(db, user_id, unread_only=unread_only, limit=limit)

    @handle_database_exceptions("count_unread_notifications")
    async def unread_count(self, db: AsyncSession, user_id: UUID) -> int:
        return await NotificationCRUD.unread_count(db, user_id)

    @transactional_database_operation("mark_notifications_read")
    async def mark_read(
        self,
        db: AsyncSession,
        user_id: UUID,
        notification_ids: Optional[List[UUID]] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Mark the given notices (all unread ones when ``notification_ids`` is None) as read."""
        return await NotificationCRUD.mark_read(db, user_id, now or utcnow(), notification_ids)


class NotificationDispatcher:
    """Fire-and-forget front of ``NotificationService`` with an isolated session."""

    def __init__(self, session_factory: async_sessionmaker, notifications: NotificationService):
        self.session_factory = session_factory
        self.notifications = notifications

    async def _dispatch(
        self, label: str, action: Callable[[AsyncSession], Awaitable[List[Notification]]]
    ) -> bool:
        try:
            async with self.session_factory() as db:
                await action(db)
            return True
        except Exception as exc:
            logger.warning(
                f"[NOTIFICATION] Dispatch '{label}' failed and was skipped: "
                f"{type(exc).__name__}: {exc}",
                exc_info=True,
            )
            return False

    async def notify(
        self,
        user_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        reference_id: Optional[UUID] = None,
    ) -> bool:
        return await self._dispatch(
            type.value,
            lambda db: self.notifications.notify_users(db, [user_id], type, title, message, reference_id),
        )

    async def notify_users(
        self,
        user_ids: Iterable[UUID],
        type: NotificationType,
        title: str,
        message: str,
        reference_id: Optional[UUID] = None,
    ) -> bool:
        targets = list(user_ids)
        return await self._dispatch(
            type.value,
            lambda db: self.notifications.notify_users(db, targets, type, title, message, reference_id),
        )

    async def notify_organization(
        self,
        organization_id: UUID,
        type: NotificationType,
        title: str,
        message: str,
        reference_id: Optional[UUID] = None,
        exclude_user_id: Optional[UUID] = None,
    ) -> bool:
        return await self._dispatch(
            type.value,
            lambda db: self.notifications.notify_organization(
                db, organization_id, type, title, message, reference_id, exclude_user_id
            ),
        )

    async def notify_admins(
        self,
        type: NotificationType,
        title: str,
        message: str,
        reference_id: Optional[UUID] = None,
        exclude_user_id: Optional[UUID] = None,
    ) -> bool:
        return await self._dispatch(
            type.value,
            lambda db: self.notifications.notify_admins(
                db, type, title, message, reference_id, exclude_user_id
            ),
        )
