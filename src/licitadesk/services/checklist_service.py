"""
Per-opportunity checklist: staff define the items, each member ticks their own.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.core.decorators import transactional_database_operation
from licitadesk.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from licitadesk.crud import ChecklistItemCRUD, ChecklistStatusCRUD, OpportunityCRUD
from licitadesk.db.models import (
    Opportunity,
    OpportunityChecklistItem,
    OpportunityChecklistUserStatus,
    utcnow,
)
from .access_service import Actor

logger = logging.getLogger(__name__)


@dataclass
class ChecklistEntry:
    item: OpportunityChecklistItem
    completed: bool


@dataclass
class ChecklistProgress:
    entries: List[ChecklistEntry]

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def completed(self) -> int:
        return sum(1 for entry in self.entries if entry.completed)

    @property
    def ratio(self) -> float:
        return self.completed / self.total if self.total else 0.0


class ChecklistService:
    @staticmethod
    async def _visible_opportunity(db: AsyncSession, actor: Actor, opportunity_id: UUID) -> Opportunity:
        opportunity = await OpportunityCRUD.find_by_id(db, opportunity_id)
        if opportunity is None:
            raise NotFoundError("Opportunity not found")
        if not actor.is_admin and (
            not opportunity.is_published or opportunity.organization_id != actor.organization_id
        ):
            raise NotFoundError("Opportunity not found")
        return opportunity

    @transactional_database_operation("add_checklist_item")
    async def add_item(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        label: str,
        order_index: Optional[int] = None,
    ) -> OpportunityChecklistItem:
        if not actor.is_admin:
            raise AuthorizationError("Only staff can edit checklists")
        label = (label or "").strip()
        if not label:
            raise ValidationError("A checklist item needs a label")
        await self._visible_opportunity(db, actor, opportunity_id)
        if order_index is None:
            order_index = len(await ChecklistItemCRUD.list_for_opportunity(db, opportunity_id))
        item = await ChecklistItemCRUD.create(
            db,
            obj_in={"opportunity_id": opportunity_id, "label": label, "order_index": order_index},
        )
        logger.info(f"Checklist item {item.id} added to opportunity {opportunity_id}")
        return item

    @transactional_database_operation("remove_checklist_item")
    async def remove_item(self, db: AsyncSession, actor: Actor, item_id: UUID) -> None:
        if not actor.is_admin:
            raise AuthorizationError("Only staff can edit checklists")
        item = await ChecklistItemCRUD.find_by_id(db, item_id)
        if item is None:
            raise NotFoundError("Checklist item not found")
        for status in await ChecklistStatusCRUD.find_all(db, filters={"checklist_item_id": item.id}):
            await db.delete(status)
        await ChecklistItemCRUD.delete(db, item)

    @transactional_database_operation("toggle_checklist_item")
    async def toggle_item(
        self,
        db: AsyncSession,
        actor: Actor,
        item_id: UUID,
        completed: Optional[bool] = None,
    ) -> OpportunityChecklistUserStatus:
        """Flip (or set) the caller's completion of one item."""
        item = await ChecklistItemCRUD.find_by_id(db, item_id)
        if item is None:
            raise NotFoundError("Checklist item not found")
        await self._visible_opportunity(db, actor, item.opportunity_id)

        status = await ChecklistStatusCRUD.find_one(
            db, filters={"checklist_item_id": item.id, "user_id": actor.id}
        )
        if status is None:
            status = OpportunityChecklistUserStatus(
                checklist_item_id=item.id, user_id=actor.id, is_completed=False
            )
        status.is_completed = (not status.is_completed) if completed is None else completed
        status.updated_at = utcnow()
        db.add(status)
        await db.flush()
        return status

    async def progress(self, db: AsyncSession, actor: Actor, opportunity_id: UUID) -> ChecklistProgress:
        await self._visible_opportunity(db, actor, opportunity_id)
        items = await ChecklistItemCRUD.list_for_opportunity(db, opportunity_id)
        done = await ChecklistStatusCRUD.completed_item_ids(db, actor.id, [item.id for item in items])
        return ChecklistProgress([ChecklistEntry(item, item.id in done) for item in items])
