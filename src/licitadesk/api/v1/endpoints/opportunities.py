"""
Opportunity Endpoints.

Staff manage the opportunity record; members of the owning organization
drive the Go/No-Go flow through the action endpoints. Every write relays the
updated row (with its status badge) on the realtime bus.

Endpoints:
- GET / - Opportunities visible to the caller
- POST / - Create a draft (staff)
- GET /{id} - One opportunity
- PATCH /{id} - Edit content, documents and status (staff)
- DELETE /{id} - Delete, optionally unlinking tickets (staff)
- POST /{id}/publish - Toggle publication (staff)
- POST /{id}/parecer - Record the Go/No-Go opinion (staff)
- POST /{id}/reopen - Reopen for analysis (staff)
- GET /{id}/actions - Member actions allowed right now
- POST /{id}/request-report, /participate, /reject, /outcome,
  /reverse-defeat, /confirm-defeat - Member actions
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.api.schemas.opportunity import (
    MemberActionsRead,
    OpportunityCreate,
    OpportunityRead,
    OpportunityUpdate,
    OutcomeRequest,
    ParecerRequest,
)
from licitadesk.core.dependencies import (
    get_db,
    get_services,
    require_admin,
    require_full_access,
    require_member_area,
)
from licitadesk.db.enums import OpportunityStatus
from licitadesk.services.access_service import Actor
from licitadesk.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[OpportunityRead])
async def list_opportunities(
    status_filter: Optional[OpportunityStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    rows = await services.opportunities.list_for_member(db, actor, status_filter)
    return [OpportunityRead.from_row(row) for row in rows]


@router.post("", response_model=OpportunityRead, status_code=status.HTTP_201_CREATED)
async def create_opportunity(
    payload: OpportunityCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    fields = payload.model_dump(exclude={"title", "closing_date", "organization_id"}, exclude_unset=True)
    opportunity = await services.opportunities.create_opportunity(
        db,
        actor,
        title=payload.title,
        closing_date=payload.closing_date,
        organization_id=payload.organization_id,
        **fields,
    )
    return OpportunityRead.from_row(opportunity)


@router.get("/{opportunity_id}", response_model=OpportunityRead)
async def get_opportunity(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    """
    Get one opportunity.

    Opening the detail view also clears the caller's notices that point at it.
    """
    opportunity = await services.opportunities.get_opportunity(db, actor, opportunity_id)
    await services.notifications.clear_by_reference(db, actor.id, opportunity.id)
    return OpportunityRead.from_row(opportunity)


@router.patch("/{opportunity_id}", response_model=OpportunityRead)
async def update_opportunity(
    opportunity_id: UUID,
    payload: OpportunityUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    """
    Edit an opportunity.

    Only the fields present in the body are applied. Attaching a report or a
    contract may move the status on its own unless ``status`` is sent too.
    """
    changes = payload.model_dump(exclude={"status", "expected_version"}, exclude_unset=True)
    opportunity = await services.opportunities.update_opportunity(
        db,
        actor,
        opportunity_id,
        changes,
        status=payload.status,
        expected_version=payload.expected_version,
    )
    return OpportunityRead.from_row(opportunity)


@router.delete("/{opportunity_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_opportunity(
    opportunity_id: UUID,
    force: bool = False,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    await services.opportunities.delete_opportunity(db, actor, opportunity_id, force=force)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{opportunity_id}/publish", response_model=OpportunityRead)
async def toggle_publish(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    opportunity = await services.opportunities.toggle_publish(db, actor, opportunity_id)
    return OpportunityRead.from_row(opportunity)


@router.post("/{opportunity_id}/parecer", response_model=OpportunityRead)
async def set_parecer(
    opportunity_id: UUID,
    payload: ParecerRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    opportunity = await services.opportunities.set_parecer(
        db, actor, opportunity_id, payload.verdict, expected_version=payload.expected_version
    )
    return OpportunityRead.from_row(opportunity)


@router.post("/{opportunity_id}/reopen", response_model=OpportunityRead)
async def reopen_for_analysis(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    opportunity = await services.opportunities.reopen_for_analysis(db, actor, opportunity_id)
    return OpportunityRead.from_row(opportunity)


# ============================================================================
# Member actions
# ============================================================================


@router.get("/{opportunity_id}/actions", response_model=MemberActionsRead)
async def allowed_member_actions(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    actions = await services.opportunities.allowed_member_actions(db, actor, opportunity_id)
    return MemberActionsRead(opportunity_id=opportunity_id, actions=actions)


@router.post("/{opportunity_id}/request-report", response_model=OpportunityRead)
async def request_report(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_full_access),
    services: ServiceRegistry = Depends(get_services),
):
    opportunity = await services.opportunities.request_report(db, actor, opportunity_id)
    return OpportunityRead.from_row(opportunity)


@router.post("/{opportunity_id}/participate", response_model=OpportunityRead)
async def participate(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_full_access),
    services: ServiceRegistry = Depends(get_services),
):
    opportunity = await services.opportunities.participate(db, actor, opportunity_id)
    return OpportunityRead.from_row(opportunity)


@router.post("/{opportunity_id}/reject", response_model=OpportunityRead)
async def reject(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_full_access),
    services: ServiceRegistry = Depends(get_services),
):
    opportunity = await services.opportunities.reject(db, actor, opportunity_id)
    return OpportunityRead.from_row(opportunity)


@router.post("/{opportunity_id}/outcome", response_model=OpportunityRead)
async def record_outcome(
    opportunity_id: UUID,
    payload: OutcomeRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_full_access),
    services: ServiceRegistry = Depends(get_services),
):
    opportunity = await services.opportunities.record_outcome(db, actor, opportunity_id, payload.won)
    return OpportunityRead.from_row(opportunity)


@router.post("/{opportunity_id}/reverse-defeat", response_model=OpportunityRead)
async def reverse_defeat(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_full_access),
    services: ServiceRegistry = Depends(get_services),
):
    opportunity = await services.opportunities.reverse_defeat(db, actor, opportunity_id)
    return OpportunityRead.from_row(opportunity)


@router.post("/{opportunity_id}/confirm-defeat", response_model=OpportunityRead)
async def confirm_defeat(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_full_access),
    services: ServiceRegistry = Depends(get_services),
):
    opportunity = await services.opportunities.confirm_defeat(db, actor, opportunity_id)
    return OpportunityRead.from_row(opportunity)
