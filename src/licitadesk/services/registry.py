"""
Service wiring.

Every long-lived collaborator (bus, typing tracker, storage, isolated
session factory) is constructed once by the application lifespan and
handed to the services here; nothing is a module-level singleton.
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from .access_service import AccessService
from .chat_message_service import ChatMessageService
from .chat_room_service import ChatRoomService
from .checklist_service import ChecklistService
from .event_publisher import RedisStreamsPublisher
from .knowledge_base_service import KnowledgeBaseService
from .minio_service import MinIOStorageService
from .notification_service import NotificationDispatcher, NotificationService
from .opportunity_service import OpportunityService
from .payment_webhook_service import PaymentWebhookService
from .realtime_bus import RealtimeBus
from .search_criteria_service import SearchCriteriaService
from .ticket_service import TicketService
from .typing_tracker import TypingTracker


@dataclass
class ServiceRegistry:
    bus: RealtimeBus
    typing: TypingTracker
    storage: MinIOStorageService
    notifications: NotificationService
    dispatcher: NotificationDispatcher
    access: AccessService
    tickets: TicketService
    opportunities: OpportunityService
    rooms: ChatRoomService
    messages: ChatMessageService
    knowledge_base: KnowledgeBaseService
    checklists: ChecklistService
    search_criteria: SearchCriteriaService
    webhooks: PaymentWebhookService

    @classmethod
    def build(
        cls,
        session_factory: async_sessionmaker,
        *,
        storage: Optional[MinIOStorageService] = None,
        mirror: Optional[RedisStreamsPublisher] = None,
        typing_window_seconds: Optional[float] = None,
    ) -> "ServiceRegistry":
        bus = RealtimeBus(mirror=mirror)
        typing = TypingTracker(bus, window_seconds=typing_window_seconds)
        storage = storage or MinIOStorageService()
        notifications = NotificationService(bus)
        dispatcher = NotificationDispatcher(session_factory, notifications)
        tickets = TicketService(bus, dispatcher)
        rooms = ChatRoomService(session_factory, bus)
        return cls(
            bus=bus,
            typing=typing,
            storage=storage,
            notifications=notifications,
            dispatcher=dispatcher,
            access=AccessService(dispatcher),
            tickets=tickets,
            opportunities=OpportunityService(bus, dispatcher, tickets),
            rooms=rooms,
            messages=ChatMessageService(bus, rooms, notifications, dispatcher, storage, typing),
            knowledge_base=KnowledgeBaseService(storage),
            checklists=ChecklistService(),
            search_criteria=SearchCriteriaService(),
            webhooks=PaymentWebhookService(dispatcher),
        )

    async def close(self) -> None:
        self.typing.clear()
        await self.bus.close()
