"""
Enums stored as their string values.

Every status column holds ``Enum.value`` in a plain String column, so the
database never needs an enum type migration when a value is added.
"""
from enum import Enum


class AppRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class OpportunityStatus(str, Enum):
    """Go/No-Go lifecycle of an audited opportunity."""

    REVIEW_REQUIRED = "Review_Required"
    SOLICITADA = "Solicitada"
    GO = "Go"
    NO_GO = "No_Go"
    REJEITADA = "Rejeitada"
    PARTICIPANDO = "Participando"
    VENCIDA = "Vencida"
    PERDIDA = "Perdida"
    CONFIRMADA = "Confirmada"
    EM_EXECUCAO = "Em_Execucao"


class TicketStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    CLOSED = "closed"


class TicketPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketEventType(str, Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    COMMENT = "comment"
    REOPENED = "reopened"
    ARCHIVED = "archived"
    CLOSED = "closed"


class RoomType(str, Enum):
    LOBBY = "lobby"
    SUPPORT = "support"
    OPPORTUNITY = "opportunity"


class NotificationType(str, Enum):
    TICKET_MESSAGE = "ticket_message"
    TICKET_STATUS = "ticket_status"
    NEW_TICKET = "new_ticket"
    CHAT_MESSAGE = "chat_message"
    MESSAGE_DELETED = "message_deleted"
    OPPORTUNITY_STATUS = "opportunity_status"
    NEW_ACCOUNT = "new_account"
    SUBSCRIPTION = "subscription"


class AccessTier(str, Enum):
    """Effective tier derived from profile flags at check time."""

    ADMIN = "admin"
    PAID_SUBSCRIBER = "paid_subscriber"
    TRIAL = "trial"
    FREE_AUTHORIZED = "free_authorized"
    FREE_PENDING = "free_pending"
