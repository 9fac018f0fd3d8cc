"""
Repository for the payment webhook dedup ledger.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.db.models import ProcessedWebhookEvent
from .base_repository import BaseCRUD


class ProcessedWebhookEventCRUD(BaseCRUD[ProcessedWebhookEvent]):
    model = ProcessedWebhookEvent

    @classmethod
    async def find_by_event_id(
        cls, db: AsyncSession, event_id: str
    ) -> Optional[ProcessedWebhookEvent]:
        return await cls.find_one(db, filters={"event_id": event_id})
