"""
Ticket Endpoints.

Members open tickets and talk to staff on them; staff move them through
their lifecycle. Status changes are recorded in the ticket's event log.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.api.schemas.ticket import (
    ServiceCategoryRead,
    ServiceGroupRead,
    TicketCreate,
    TicketEventRead,
    TicketMessageCreate,
    TicketMessageRead,
    TicketRead,
    TicketStatusUpdate,
)
from licitadesk.core.dependencies import (
    get_db,
    get_services,
    require_admin,
    require_member_area,
)
from licitadesk.db.enums import TicketStatus
from licitadesk.services import service_catalog
from licitadesk.services.access_service import Actor
from licitadesk.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/catalog", response_model=List[ServiceGroupRead])
async def service_catalog_for_caller(actor: Actor = Depends(require_member_area)):
    """Service categories grouped for the new-ticket form, priced for the caller."""
    paid = actor.access.is_paid_subscriber
    return [
        ServiceGroupRead(
            group=group,
            categories=[
                ServiceCategoryRead(
                    id=category.id,
                    service=category.service,
                    description=category.description,
                    price=category.price_subscriber if paid else category.price_regular,
                    success_fee=category.success_fee,
                    upgradeable=category.upgradeable,
                )
                for category in categories
            ],
        )
        for group, categories in service_catalog.grouped_categories().items()
    ]


@router.get("", response_model=List[TicketRead])
async def list_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    include_archived: bool = False,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.tickets.list_tickets(db, actor, status_filter, include_archived)


@router.post("", response_model=TicketRead, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.tickets.create_ticket(db, actor, **payload.model_dump())


@router.get("/{ticket_id}", response_model=TicketRead)
async def get_ticket(
    ticket_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    ticket = await services.tickets.get_ticket(db, actor, ticket_id)
    await services.notifications.clear_by_reference(db, actor.id, ticket.id)
    return ticket


@router.put("/{ticket_id}/status", response_model=TicketRead)
async def change_status(
    ticket_id: UUID,
    payload: TicketStatusUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.tickets.change_status(
        db, actor, ticket_id, payload.status, expected_version=payload.expected_version
    )


@router.post("/{ticket_id}/reopen", response_model=TicketRead)
async def reopen_ticket(
    ticket_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.tickets.reopen_ticket(db, actor, ticket_id)


@router.post("/{ticket_id}/archive", response_model=TicketRead)
async def archive_ticket(
    ticket_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.tickets.archive_ticket(db, actor, ticket_id)


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(
    ticket_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    """Delete a closed ticket with its messages, events and notices."""
    await services.tickets.delete_ticket(db, actor, ticket_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{ticket_id}/events", response_model=List[TicketEventRead])
async def list_events(
    ticket_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.tickets.list_events(db, actor, ticket_id)


@router.get("/{ticket_id}/messages", response_model=List[TicketMessageRead])
async def list_messages(
    ticket_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.tickets.list_messages(db, actor, ticket_id)


@router.post(
    "/{ticket_id}/messages",
    response_model=TicketMessageRead,
    status_code=status.HTTP_201_CREATED,
)
async def post_message(
    ticket_id: UUID,
    payload: TicketMessageCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.tickets.post_message(db, actor, ticket_id, payload.message)
