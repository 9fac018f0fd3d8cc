"""Table repositories."""

from .base_repository import BaseCRUD
from .chat_crud import ChatMessageCRUD, ChatReadStateCRUD, ChatRoomCRUD
from .knowledge_base_crud import KBArticleCRUD, KBCategoryCRUD
from .notification_crud import NotificationCRUD
from .opportunity_crud import ChecklistItemCRUD, ChecklistStatusCRUD, OpportunityCRUD
from .profile_crud import OrganizationCRUD, ProfileCRUD, UserRoleCRUD
from .search_criteria_crud import SearchCriteriaCRUD
from .ticket_crud import TicketCRUD, TicketEventCRUD, TicketMessageCRUD
from .webhook_crud import ProcessedWebhookEventCRUD

__all__ = [
    "BaseCRUD",
    "ChatMessageCRUD",
    "ChatReadStateCRUD",
    "ChatRoomCRUD",
    "ChecklistItemCRUD",
    "ChecklistStatusCRUD",
    "KBArticleCRUD",
    "KBCategoryCRUD",
    "NotificationCRUD",
    "OpportunityCRUD",
    "OrganizationCRUD",
    "ProcessedWebhookEventCRUD",
    "ProfileCRUD",
    "SearchCriteriaCRUD",
    "TicketCRUD",
    "TicketEventCRUD",
    "TicketMessageCRUD",
    "UserRoleCRUD",
]
