"""
Database models.

All primary keys are UUIDs except the small bookkeeping tables. Status
columns store enum values as strings (see db.enums). Timestamps are naive
UTC; conversion to the viewer's timezone happens in the client.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlmodel import Field, SQLModel

from .enums import (
    OpportunityStatus,
    RoomType,
    TicketPriority,
    TicketStatus,
)


def utcnow() -> datetime:
    """Current time in UTC, timezone-naive, for database storage."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _fk(target: str, *, ondelete: str = "CASCADE", nullable: bool = False, index: bool = True) -> Column:
    return Column(Uuid, ForeignKey(target, ondelete=ondelete), nullable=nullable, index=index)


class TableModel(SQLModel):
    """Base table model with common functionality."""

    pass


# ==================== Identity & access ====================


class Organization(TableModel, table=True):
    """A client company; members of the same organization share opportunities."""

    __tablename__ = "organizations"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255)
    created_at: datetime = Field(default_factory=utcnow)


class Profile(TableModel, table=True):
    """Member profile. ``id`` equals the identity provider's user id.

    Access flags are read on every authorization check; the derived tier is
    never stored.
    """

    __tablename__ = "profiles"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(sa_column=Column(String(255), nullable=False, unique=True, index=True))
    full_name: Optional[str] = Field(default=None, max_length=255)
    company: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    organization_id: Optional[UUID] = Field(
        default=None, sa_column=_fk("organizations.id", ondelete="SET NULL", nullable=True)
    )

    subscription_active: bool = Field(default=False)
    trial_active: bool = Field(default=False)
    trial_expires_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    access_authorized: bool = Field(default=False)

    contract_accepted: bool = Field(default=False)
    pricing_accepted: bool = Field(default=False)
    lgpd_accepted: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserRole(TableModel, table=True):
    __tablename__ = "user_roles"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(sa_column=_fk("profiles.id"))
    role: str = Field(max_length=20)

    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)


class UserSearchCriteria(TableModel, table=True):
    """What a member wants staff to hunt for: one record per member."""

    __tablename__ = "user_search_criteria"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(
        sa_column=Column(Uuid, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True)
    )
    keywords: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    states: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    company_presentation: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    capabilities: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    minimum_value: Optional[Decimal] = Field(
        default=None, sa_column=Column(Numeric(16, 2), nullable=True)
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ==================== Opportunities ====================


class Opportunity(TableModel, table=True):
    """A procurement notice under review for one client organization."""

    __tablename__ = "opportunities"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    title: str = Field(max_length=500)
    agency_name: Optional[str] = Field(default=None, max_length=255)
    closing_date: date = Field(sa_column=Column(Date, nullable=False))
    organization_id: UUID = Field(sa_column=_fk("organizations.id"))
    status: str = Field(
        default=OpportunityStatus.REVIEW_REQUIRED.value,
        sa_column=Column(String(30), nullable=False, index=True,
                         default=OpportunityStatus.REVIEW_REQUIRED.value),
    )
    opportunity_abstract: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    opportunity_url: Optional[str] = Field(default=None, max_length=1000)

    audit_report_path: Optional[str] = Field(default=None, max_length=500)
    petition_path: Optional[str] = Field(default=None, max_length=500)
    contract_path: Optional[str] = Field(default=None, max_length=500)

    estimated_value: Optional[Decimal] = Field(
        default=None, sa_column=Column(Numeric(16, 2), nullable=True)
    )
    winning_value: Optional[Decimal] = Field(
        default=None, sa_column=Column(Numeric(16, 2), nullable=True)
    )

    is_published: bool = Field(default=False)
    report_requested_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    defeat_confirmed: bool = Field(default=False)

    version: int = Field(default=1)
    status_changed_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    __table_args__ = (
        Index("ix_opportunities_org_published", "organization_id", "is_published"),
    )


class OpportunityChecklistItem(TableModel, table=True):
    __tablename__ = "opportunity_checklist_items"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    opportunity_id: UUID = Field(sa_column=_fk("opportunities.id"))
    label: str = Field(max_length=500)
    order_index: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)


class OpportunityChecklistUserStatus(TableModel, table=True):
    __tablename__ = "opportunity_checklist_user_status"

    id: Optional[int] = Field(default=None, primary_key=True)
    checklist_item_id: UUID = Field(sa_column=_fk("opportunity_checklist_items.id"))
    user_id: UUID = Field(sa_column=_fk("profiles.id"))
    is_completed: bool = Field(default=False)
    updated_at: datetime = Field(default_factory=utcnow)

    __table_args__ = (
        UniqueConstraint("checklist_item_id", "user_id", name="uq_checklist_status_item_user"),
    )


# ==================== Tickets ====================


class Ticket(TableModel, table=True):
    """A unit of client-requested work, optionally bound to one opportunity."""

    __tablename__ = "tickets"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(sa_column=_fk("profiles.id"))
    opportunity_id: Optional[UUID] = Field(
        default=None, sa_column=_fk("opportunities.id", ondelete="SET NULL", nullable=True)
    )
    title: str = Field(max_length=255)
    description: str = Field(sa_column=Column(Text, nullable=False))
    status: str = Field(
        default=TicketStatus.OPEN.value,
        sa_column=Column(String(20), nullable=False, index=True, default=TicketStatus.OPEN.value),
    )
    priority: str = Field(default=TicketPriority.MEDIUM.value, max_length=10)
    deadline: Optional[date] = Field(default=None, sa_column=Column(Date, nullable=True))
    # Compound tag: base category id plus optional "+upgrade" suffix
    service_category: Optional[str] = Field(default=None, max_length=100)
    service_price: Optional[str] = Field(default=None, max_length=255)
    attachment_url: Optional[str] = Field(default=None, max_length=1000)
    is_archived: bool = Field(default=False)

    version: int = Field(default=1)
    status_changed_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class TicketMessage(TableModel, table=True):
    __tablename__ = "ticket_messages"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    ticket_id: UUID = Field(sa_column=_fk("tickets.id"))
    user_id: UUID = Field(sa_column=_fk("profiles.id"))
    message: str = Field(sa_column=Column(Text, nullable=False))
    is_admin: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)


class TicketEvent(TableModel, table=True):
    """Append-only audit log entry for a ticket."""

    __tablename__ = "ticket_events"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    ticket_id: UUID = Field(sa_column=_fk("tickets.id"))
    user_id: Optional[UUID] = Field(
        default=None, sa_column=_fk("profiles.id", ondelete="SET NULL", nullable=True, index=False)
    )
    event_type: str = Field(max_length=30)
    old_value: Optional[str] = Field(default=None, max_length=255)
    new_value: Optional[str] = Field(default=None, max_length=255)
    event_metadata: Optional[Dict[str, Any]] = Field(
        default=None, sa_column=Column("metadata", JSON, nullable=True)
    )
    created_at: datetime = Field(default_factory=utcnow)


# ==================== Chat ====================


class ChatRoom(TableModel, table=True):
    """Conversation container.

    Active-room uniqueness is enforced by partial unique indexes:
    one active lobby overall, one active support room per member, one
    active opportunity room per opportunity.
    """

    __tablename__ = "chat_rooms"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    room_type: str = Field(sa_column=Column(String(20), nullable=False))
    # Support: owning member. Lobby/opportunity: creator, informational only.
    user_id: Optional[UUID] = Field(
        default=None, sa_column=_fk("profiles.id", ondelete="SET NULL", nullable=True)
    )
    opportunity_id: Optional[UUID] = Field(
        default=None, sa_column=_fk("opportunities.id", nullable=True)
    )
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)
    closed_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))

    __table_args__ = (
        Index(
            "uq_chat_rooms_active_lobby",
            "room_type",
            unique=True,
            postgresql_where=text(f"room_type = '{RoomType.LOBBY.value}' AND is_active"),
            sqlite_where=text(f"room_type = '{RoomType.LOBBY.value}' AND is_active"),
        ),
        Index(
            "uq_chat_rooms_active_support",
            "user_id",
            "room_type",
            unique=True,
            postgresql_where=text(f"room_type = '{RoomType.SUPPORT.value}' AND is_active"),
            sqlite_where=text(f"room_type = '{RoomType.SUPPORT.value}' AND is_active"),
        ),
        Index(
            "uq_chat_rooms_active_opportunity",
            "opportunity_id",
            "room_type",
            unique=True,
            postgresql_where=text(f"room_type = '{RoomType.OPPORTUNITY.value}' AND is_active"),
            sqlite_where=text(f"room_type = '{RoomType.OPPORTUNITY.value}' AND is_active"),
        ),
    )


class ChatMessage(TableModel, table=True):
    """Chat message; ``is_admin`` is captured at write time and never updated."""

    __tablename__ = "chat_messages"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    room_id: UUID = Field(sa_column=_fk("chat_rooms.id", index=False))
    user_id: UUID = Field(sa_column=_fk("profiles.id"))
    message: str = Field(sa_column=Column(Text, nullable=False))
    is_admin: bool = Field(default=False)
    # Commit order within the room
    sequence_number: int = Field(sa_column=Column(Integer, nullable=False))
    is_deleted: bool = Field(default=False)
    deleted_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    __table_args__ = (
        Index("ix_chat_messages_room_sequence", "room_id", "sequence_number", unique=True),
        Index("ix_chat_messages_room_created", "room_id", "created_at"),
    )


class ChatReadState(TableModel, table=True):
    """Durable per-(user, room) read cursor."""

    __tablename__ = "chat_read_states"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(sa_column=_fk("profiles.id", index=False))
    room_id: UUID = Field(sa_column=_fk("chat_rooms.id"))
    last_read_sequence: int = Field(default=0, ge=0)
    last_read_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    __table_args__ = (UniqueConstraint("user_id", "room_id", name="uq_chat_read_states_user_room"),)


# ==================== Notifications ====================


class Notification(TableModel, table=True):
    """One-way notice shown in the bell menu."""

    __tablename__ = "notifications"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    user_id: UUID = Field(sa_column=_fk("profiles.id", index=False))
    type: str = Field(max_length=30)
    title: str = Field(max_length=255)
    message: str = Field(sa_column=Column(Text, nullable=False))
    # Ticket, opportunity or room id; no FK, the target may be any of them
    reference_id: Optional[UUID] = Field(default=None, sa_column=Column(Uuid, nullable=True))
    is_read: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    read_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime, nullable=True))
    created_at: datetime = Field(default_factory=utcnow)

    __table_args__ = (
        Index("ix_notifications_user_unread", "user_id", "is_read"),
        Index("ix_notifications_user_reference", "user_id", "reference_id"),
    )


# ==================== Knowledge base ====================


class KBCategory(TableModel, table=True):
    __tablename__ = "kb_categories"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    icon: Optional[str] = Field(default=None, max_length=50)
    is_premium: bool = Field(default=False)
    order_index: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)


class KBArticle(TableModel, table=True):
    __tablename__ = "kb_articles"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    category_id: UUID = Field(sa_column=_fk("kb_categories.id"))
    title: str = Field(max_length=255)
    content: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    file_url: Optional[str] = Field(default=None, max_length=500)
    is_published: bool = Field(default=False)
    views: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ==================== Payments ====================


class ProcessedWebhookEvent(TableModel, table=True):
    """Dedup ledger for at-least-once payment webhook delivery."""

    __tablename__ = "processed_webhook_events"

    id: Optional[int] = Field(default=None, primary_key=True)
    event_id: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    event_type: str = Field(max_length=100)
    payment_id: Optional[str] = Field(default=None, max_length=255)
    customer_email: Optional[str] = Field(default=None, max_length=255)
    processed_at: datetime = Field(default_factory=utcnow)
