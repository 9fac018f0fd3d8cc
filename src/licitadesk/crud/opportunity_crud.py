"""
Repositories for opportunities and their checklists.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.db.models import (
    ChatMessage,
    ChatReadState,
    ChatRoom,
    Notification,
    Opportunity,
    OpportunityChecklistItem,
    OpportunityChecklistUserStatus,
    Ticket,
)
from .base_repository import BaseCRUD


class OpportunityCRUD(BaseCRUD[Opportunity]):
    model = Opportunity

    @classmethod
    async def list_published_for_organization(
        cls,
        db: AsyncSession,
        organization_id: UUID,
        *,
        statuses: Optional[List[str]] = None,
    ) -> List[Opportunity]:
        stmt = select(Opportunity).where(
            Opportunity.organization_id == organization_id,
            Opportunity.is_published.is_(True),
        )
        if statuses:
            stmt = stmt.where(Opportunity.status.in_(statuses))
        result = await db.execute(stmt.order_by(Opportunity.closing_date.desc()))
        return list(result.scalars().all())

    @classmethod
    async def list_all(
        cls,
        db: AsyncSession,
        *,
        status: Optional[str] = None,
        organization_id: Optional[UUID] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Opportunity]:
        stmt = select(Opportunity)
        if status:
            stmt = stmt.where(Opportunity.status == status)
        if organization_id:
            stmt = stmt.where(Opportunity.organization_id == organization_id)
        stmt = stmt.order_by(Opportunity.closing_date.desc()).offset(offset).limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @classmethod
    async def search_published_titles(
        cls,
        db: AsyncSession,
        query: str,
        *,
        organization_id: Optional[UUID] = None,
        limit: int = 5,
    ) -> List[Opportunity]:
        stmt = select(Opportunity).where(Opportunity.is_published.is_(True))
        if query:
            stmt = stmt.where(func.lower(Opportunity.title).contains(query.lower()))
        if organization_id:
            stmt = stmt.where(Opportunity.organization_id == organization_id)
        result = await db.execute(stmt.order_by(Opportunity.closing_date.desc()).limit(limit))
        return list(result.scalars().all())

    @classmethod
    async def unlink_tickets(cls, db: AsyncSession, opportunity_id: UUID) -> int:
        result = await db.execute(
            update(Ticket)
            .where(Ticket.opportunity_id == opportunity_id)
            .values(opportunity_id=None)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    @classmethod
    async def purge_children(cls, db: AsyncSession, opportunity_id: UUID) -> None:
        """Remove rooms, checklist rows and notices ahead of an opportunity hard delete."""
        room_ids = select(ChatRoom.id).where(ChatRoom.opportunity_id == opportunity_id)
        item_ids = select(OpportunityChecklistItem.id).where(
            OpportunityChecklistItem.opportunity_id == opportunity_id
        )
        await db.execute(delete(ChatMessage).where(ChatMessage.room_id.in_(room_ids)))
        await db.execute(delete(ChatReadState).where(ChatReadState.room_id.in_(room_ids)))
        await db.execute(delete(Notification).where(Notification.reference_id.in_(room_ids)))
        await db.execute(delete(ChatRoom).where(ChatRoom.opportunity_id == opportunity_id))
        await db.execute(
            delete(OpportunityChecklistUserStatus).where(
                OpportunityChecklistUserStatus.checklist_item_id.in_(item_ids)
            )
        )
        await db.execute(
            delete(OpportunityChecklistItem).where(
                OpportunityChecklistItem.opportunity_id == opportunity_id
            )
        )
        await db.execute(delete(Notification).where(Notification.reference_id == opportunity_id))


class ChecklistItemCRUD(BaseCRUD[OpportunityChecklistItem]):
    model = OpportunityChecklistItem

    @classmethod
    async def list_for_opportunity(
        cls, db: AsyncSession, opportunity_id: UUID
    ) -> List[OpportunityChecklistItem]:
        return await cls.find_all(
            db,
            filters={"opportunity_id": opportunity_id},
            order_by=[OpportunityChecklistItem.order_index, OpportunityChecklistItem.created_at],
        )


class ChecklistStatusCRUD(BaseCRUD[OpportunityChecklistUserStatus]):
    model = OpportunityChecklistUserStatus

    @classmethod
    async def completed_item_ids(
        cls, db: AsyncSession, user_id: UUID, item_ids: List[UUID]
    ) -> set:
        if not item_ids:
            return set()
        result = await db.execute(
            select(OpportunityChecklistUserStatus.checklist_item_id).where(
                OpportunityChecklistUserStatus.user_id == user_id,
                OpportunityChecklistUserStatus.checklist_item_id.in_(item_ids),
                OpportunityChecklistUserStatus.is_completed.is_(True),
            )
        )
        return set(result.scalars().all())
