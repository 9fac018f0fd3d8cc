"""Database models and enums."""

from .enums import (
    AccessTier,
    AppRole,
    NotificationType,
    OpportunityStatus,
    RoomType,
    TicketEventType,
    TicketPriority,
    TicketStatus,
)
from .models import (
    ChatMessage,
    ChatReadState,
    ChatRoom,
    KBArticle,
    KBCategory,
    Notification,
    Opportunity,
    OpportunityChecklistItem,
    OpportunityChecklistUserStatus,
    Organization,
    ProcessedWebhookEvent,
    Profile,
    TableModel,
    Ticket,
    TicketEvent,
    TicketMessage,
    UserRole,
    UserSearchCriteria,
    utcnow,
)

__all__ = [
    "AccessTier",
    "AppRole",
    "ChatMessage",
    "ChatReadState",
    "ChatRoom",
    "KBArticle",
    "KBCategory",
    "Notification",
    "NotificationType",
    "Opportunity",
    "OpportunityChecklistItem",
    "OpportunityChecklistUserStatus",
    "OpportunityStatus",
    "Organization",
    "ProcessedWebhookEvent",
    "Profile",
    "RoomType",
    "TableModel",
    "Ticket",
    "TicketEvent",
    "TicketEventType",
    "TicketMessage",
    "TicketPriority",
    "TicketStatus",
    "UserRole",
    "UserSearchCriteria",
    "utcnow",
]
