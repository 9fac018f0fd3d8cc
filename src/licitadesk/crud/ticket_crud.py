"""
Repositories for tickets, their messages and their event log.
"""
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.db.models import Ticket, TicketEvent, TicketMessage
from .base_repository import BaseCRUD


class TicketCRUD(BaseCRUD[Ticket]):
    model = Ticket

    @classmethod
    async def list_for_opportunity(cls, db: AsyncSession, opportunity_id: UUID) -> List[Ticket]:
        return await cls.find_all(
            db, filters={"opportunity_id": opportunity_id}, order_by=Ticket.created_at
        )

    @classmethod
    async def list_tickets(
        cls,
        db: AsyncSession,
        *,
        user_id: Optional[UUID] = None,
        status: Optional[str] = None,
        include_archived: bool = False,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Ticket]:
        stmt = select(Ticket)
        if user_id:
            stmt = stmt.where(Ticket.user_id == user_id)
        if status:
            stmt = stmt.where(Ticket.status == status)
        if not include_archived:
            stmt = stmt.where(Ticket.is_archived.is_(False))
        stmt = stmt.order_by(Ticket.created_at.desc()).offset(offset).limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @classmethod
    async def purge_children(cls, db: AsyncSession, ticket_id: UUID) -> None:
        """Remove messages and events ahead of a ticket hard delete."""
        await db.execute(delete(TicketMessage).where(TicketMessage.ticket_id == ticket_id))
        await db.execute(delete(TicketEvent).where(TicketEvent.ticket_id == ticket_id))


class TicketMessageCRUD(BaseCRUD[TicketMessage]):
    model = TicketMessage

    @classmethod
    async def list_for_ticket(cls, db: AsyncSession, ticket_id: UUID) -> List[TicketMessage]:
        return await cls.find_all(
            db, filters={"ticket_id": ticket_id}, order_by=TicketMessage.created_at
        )


class TicketEventCRUD(BaseCRUD[TicketEvent]):
    model = TicketEvent

    @classmethod
    async def list_for_ticket(cls, db: AsyncSession, ticket_id: UUID) -> List[TicketEvent]:
        return await cls.find_all(
            db, filters={"ticket_id": ticket_id}, order_by=TicketEvent.created_at
        )
