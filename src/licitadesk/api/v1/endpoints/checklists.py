"""
Opportunity Checklist Endpoints.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.api.schemas.checklist import (
    ChecklistEntryRead,
    ChecklistItemCreate,
    ChecklistItemRead,
    ChecklistProgressRead,
    ChecklistStatusRead,
    ChecklistToggle,
)
from licitadesk.core.dependencies import (
    get_db,
    get_services,
    require_admin,
    require_member_area,
)
from licitadesk.services.access_service import Actor
from licitadesk.services.registry import ServiceRegistry

router = APIRouter()


@router.get("/opportunities/{opportunity_id}", response_model=ChecklistProgressRead)
async def get_progress(
    opportunity_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    progress = await services.checklists.progress(db, actor, opportunity_id)
    return ChecklistProgressRead(
        entries=[
            ChecklistEntryRead(item=ChecklistItemRead.model_validate(entry.item), completed=entry.completed)
            for entry in progress.entries
        ],
        total=progress.total,
        completed=progress.completed,
        ratio=progress.ratio,
    )


@router.post(
    "/opportunities/{opportunity_id}/items",
    response_model=ChecklistItemRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_item(
    opportunity_id: UUID,
    payload: ChecklistItemCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.checklists.add_item(
        db, actor, opportunity_id, payload.label, payload.order_index
    )


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    await services.checklists.remove_item(db, actor, item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/items/{item_id}/toggle", response_model=ChecklistStatusRead)
async def toggle_item(
    item_id: UUID,
    payload: ChecklistToggle,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.checklists.toggle_item(db, actor, item_id, payload.completed)
