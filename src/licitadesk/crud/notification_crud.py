"""
Repository for notices.
"""
from datetime import datetime
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.db.models import Notification
from .base_repository import BaseCRUD


class NotificationCRUD(BaseCRUD[Notification]):
    model = Notification

    @classmethod
    async def bulk_create(
        cls,
        db: AsyncSession,
        *,
        user_ids: Iterable[UUID],
        type: str,
        title: str,
        message: str,
        reference_id: Optional[UUID] = None,
    ) -> List[Notification]:
        """One row per target user, flushed in one round trip."""
        rows = [
            Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                reference_id=reference_id,
                is_read=False,
            )
            for user_id in dict.fromkeys(user_ids)
        ]
        db.add_all(rows)
        await db.flush()
        return rows

    @classmethod
    async def list_for_user(
        cls,
        db: AsyncSession,
        user_id: UUID,
        *,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @classmethod
    async def unread_count(cls, db: AsyncSession, user_id: UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return int(result.scalar() or 0)

    @classmethod
    async def mark_read_by_reference(
        cls, db: AsyncSession, user_id: UUID, reference_id: UUID, read_at: datetime
    ) -> int:
        """Bulk update; rows already read are left untouched."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.reference_id == reference_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    @classmethod
    async def mark_read(
        cls,
        db: AsyncSession,
        user_id: UUID,
        read_at: datetime,
        notification_ids: Optional[List[UUID]] = None,
    ) -> int:
        stmt = update(Notification).where(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
        if notification_ids is not None:
            if not notification_ids:
                return 0
            stmt = stmt.where(Notification.id.in_(notification_ids))
        result = await db.execute(
            stmt.values(is_read=True, read_at=read_at).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    @classmethod
    async def delete_by_reference(cls, db: AsyncSession, reference_id: UUID) -> int:
        result = await db.execute(
            delete(Notification).where(Notification.reference_id == reference_id)
        )
        return result.rowcount or 0
