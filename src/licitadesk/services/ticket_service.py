"""
Ticket lifecycle service.

Writes happen in one transaction per operation; realtime events and
notices go out only after that transaction committed. Status rules live in
``ticket_rules``; this module loads rows, enforces who may act and records
the audit trail.
"""

import logging
from datetime import date, datetime
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.core.config import settings
from licitadesk.core.decorators import (
    handle_database_exceptions,
    log_database_operation,
    transactional_database_operation,
)
from licitadesk.core.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from licitadesk.core.logging_config import WorkflowLogger
from licitadesk.crud import (
    NotificationCRUD,
    OpportunityCRUD,
    ProfileCRUD,
    TicketCRUD,
    TicketEventCRUD,
    TicketMessageCRUD,
)
from licitadesk.db.enums import NotificationType, TicketEventType, TicketPriority, TicketStatus
from licitadesk.db.models import Ticket, TicketEvent, TicketMessage, utcnow
from . import ticket_rules
from .access_service import Actor
from .business_calendar import is_business_day, minimum_deadline
from .event_models import TICKET_MESSAGES, TICKETS, ChangeAction, record_of
from .notification_service import NotificationDispatcher
from .realtime_bus import RealtimeBus
from .service_catalog import PETITION_RESOLVED_CATEGORIES, base_category, quote_price

logger = logging.getLogger(__name__)
workflow_log = WorkflowLogger("ticket")

STATUS_LABELS = {
    TicketStatus.OPEN: "Aberto",
    TicketStatus.IN_PROGRESS: "Em andamento",
    TicketStatus.UNDER_REVIEW: "Em revisão",
    TicketStatus.RESOLVED: "Resolvido",
    TicketStatus.CLOSED: "Fechado",
}


def _check_version(ticket: Ticket, expected_version: Optional[int]) -> None:
    if expected_version is not None and expected_version != ticket.version:
        raise ConflictError(
            "The ticket was changed by someone else; reload and try again",
            expected=expected_version,
            actual=ticket.version,
        )


def _touch(ticket: Ticket, now: datetime) -> None:
    ticket.version += 1
    ticket.updated_at = now


class TicketService:
    def __init__(self, bus: RealtimeBus, dispatcher: NotificationDispatcher):
        self.bus = bus
        self.dispatcher = dispatcher

    # ==================== Loading & access ====================

    @staticmethod
    async def _load(db: AsyncSession, ticket_id: UUID, *, for_update: bool = False) -> Ticket:
        ticket = await TicketCRUD.find_by_id(db, ticket_id, for_update=for_update)
        if ticket is None:
            raise NotFoundError("Ticket not found")
        return ticket

    @staticmethod
    def _check_party(actor: Actor, ticket: Ticket) -> None:
        if not actor.is_admin and ticket.user_id != actor.id:
            raise AuthorizationError("You can only access your own tickets")

    async def get_ticket(self, db: AsyncSession, actor: Actor, ticket_id: UUID) -> Ticket:
        ticket = await self._load(db, ticket_id)
        self._check_party(actor, ticket)
        return ticket

    @handle_database_exceptions("list_tickets")
    @log_database_operation("ticket listing", level="debug")
    async def list_tickets(
        self,
        db: AsyncSession,
        actor: Actor,
        status: Optional[TicketStatus] = None,
        include_archived: bool = False,
    ) -> List[Ticket]:
        return await TicketCRUD.list_tickets(
            db,
            user_id=None if actor.is_admin else actor.id,
            status=status.value if status else None,
            include_archived=include_archived,
        )

    async def list_events(self, db: AsyncSession, actor: Actor, ticket_id: UUID) -> List[TicketEvent]:
        ticket = await self.get_ticket(db, actor, ticket_id)
        return await TicketEventCRUD.list_for_ticket(db, ticket.id)

    async def list_messages(self, db: AsyncSession, actor: Actor, ticket_id: UUID) -> List[TicketMessage]:
        ticket = await self.get_ticket(db, actor, ticket_id)
        return await TicketMessageCRUD.list_for_ticket(db, ticket.id)

    # ==================== Creation ====================

    async def create_ticket(
        self,
        db: AsyncSession,
        actor: Actor,
        *,
        title: str,
        description: str,
        service_category: Optional[str] = None,
        priority: TicketPriority = TicketPriority.MEDIUM,
        deadline: Optional[date] = None,
        opportunity_id: Optional[UUID] = None,
        attachment_url: Optional[str] = None,
        on_behalf_of: Optional[UUID] = None,
        today: Optional[date] = None,
    ) -> Ticket:
        ticket = await self._create_tx(
            db,
            actor,
            title=title,
            description=description,
            service_category=service_category,
            priority=priority,
            deadline=deadline,
            opportunity_id=opportunity_id,
            attachment_url=attachment_url,
            on_behalf_of=on_behalf_of,
            today=today or utcnow().date(),
        )
        await self.bus.publish(TICKETS, ChangeAction.INSERT, record_of(ticket))
        await self.dispatcher.notify_admins(
            NotificationType.NEW_TICKET,
            "Novo chamado",
            f"Chamado aberto: {ticket.title}",
            reference_id=ticket.id,
            exclude_user_id=actor.id,
        )
        return ticket

    @transactional_database_operation("create_ticket")
    async def _create_tx(
        self,
        db: AsyncSession,
        actor: Actor,
        *,
        title: str,
        description: str,
        service_category: Optional[str],
        priority: TicketPriority,
        deadline: Optional[date],
        opportunity_id: Optional[UUID],
        attachment_url: Optional[str],
        on_behalf_of: Optional[UUID],
        today: date,
    ) -> Ticket:
        title = (title or "").strip()
        description = (description or "").strip()
        if not title:
            raise ValidationError("A ticket needs a title")
        if len(title) > 255:
            raise ValidationError("Ticket titles are limited to 255 characters")
        if not description:
            raise ValidationError("A ticket needs a description")

        owner = actor.profile
        if on_behalf_of is not None and on_behalf_of != actor.id:
            if not actor.is_admin:
                raise AuthorizationError("Only staff can open tickets for another member")
            owner = await ProfileCRUD.find_by_id(db, on_behalf_of)
            if owner is None:
                raise NotFoundError("Member not found")

        price = None
        if service_category:
            try:
                paid = actor.access.is_paid_subscriber if owner is actor.profile else bool(owner.subscription_active)
                price = quote_price(service_category, paid_subscriber=paid)
            except ValueError as e:
                raise ValidationError(str(e)) from e

        if deadline is not None:
            if not is_business_day(deadline):
                raise ValidationError("The deadline must fall on a business day")
            earliest = minimum_deadline(today, settings.workflow.min_deadline_business_days)
            if deadline < earliest:
                raise ValidationError(f"The earliest possible deadline is {earliest.isoformat()}")

        if opportunity_id is not None:
            opportunity = await OpportunityCRUD.find_by_id(db, opportunity_id)
            if opportunity is None:
                raise NotFoundError("Opportunity not found")
            if not actor.is_admin and (
                opportunity.organization_id != owner.organization_id or not opportunity.is_published
            ):
                raise AuthorizationError("This opportunity does not belong to your organization")

        now = utcnow()
        ticket = await TicketCRUD.create(
            db,
            obj_in={
                "user_id": owner.id,
                "opportunity_id": opportunity_id,
                "title": title,
                "description": description,
                "status": TicketStatus.OPEN.value,
                "priority": priority.value,
                "deadline": deadline,
                "service_category": service_category,
                "service_price": price,
                "attachment_url": attachment_url,
                "status_changed_at": now,
                "created_at": now,
                "updated_at": now,
            },
        )
        await TicketEventCRUD.create(
            db,
            obj_in={
                "ticket_id": ticket.id,
                "user_id": actor.id,
                "event_type": TicketEventType.CREATED.value,
                "new_value": TicketStatus.OPEN.value,
                "created_at": now,
            },
        )
        workflow_log.audit(ticket.id, "created", actor.id, category=service_category, owner=owner.id)
        return ticket

    # ==================== Status changes ====================

    async def _announce_status(self, ticket: Ticket, old_status: str, actor_id: Optional[UUID]) -> None:
        await self.bus.publish(TICKETS, ChangeAction.UPDATE, record_of(ticket))
        label = STATUS_LABELS[TicketStatus(ticket.status)]
        title = "Status do chamado atualizado"
        message = f"{ticket.title}: {label}"
        await self.dispatcher.notify_admins(
            NotificationType.TICKET_STATUS, title, message,
            reference_id=ticket.id, exclude_user_id=actor_id,
        )
        if ticket.user_id != actor_id:
            await self.dispatcher.notify(
                ticket.user_id, NotificationType.TICKET_STATUS, title, message, reference_id=ticket.id
            )

    async def change_status(
        self,
        db: AsyncSession,
        actor: Actor,
        ticket_id: UUID,
        new_status: TicketStatus,
        *,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Ticket:
        """Staff move a ticket forward (or cancel it)."""
        if not actor.is_admin:
            raise AuthorizationError("Only staff can change a ticket's status")
        if new_status == TicketStatus.OPEN:
            return await self.reopen_ticket(db, actor, ticket_id, now=now)

        ticket, old_status = await self._change_status_tx(
            db, actor, ticket_id, new_status, expected_version, now or utcnow()
        )
        await self._announce_status(ticket, old_status, actor.id)
        return ticket

    @transactional_database_operation("change_ticket_status")
    async def _change_status_tx(
        self,
        db: AsyncSession,
        actor: Actor,
        ticket_id: UUID,
        new_status: TicketStatus,
        expected_version: Optional[int],
        now: datetime,
    ) -> Tuple[Ticket, str]:
        ticket = await self._load(db, ticket_id, for_update=True)
        _check_version(ticket, expected_version)
        current = TicketStatus(ticket.status)
        try:
            ticket_rules.check_forward(current, new_status)
        except InvalidTransitionError as e:
            workflow_log.rejected(ticket.id, current.value, new_status.value, actor.id, str(e))
            raise
        self._apply_status(db, ticket, new_status, actor.id, now)
        return ticket, current.value

    @staticmethod
    def _apply_status(
        db: AsyncSession,
        ticket: Ticket,
        new_status: TicketStatus,
        actor_id: Optional[UUID],
        now: datetime,
        metadata: Optional[dict] = None,
    ) -> None:
        old_status = ticket.status
        ticket.status = new_status.value
        ticket.status_changed_at = now
        _touch(ticket, now)
        db.add(ticket)
        db.add(
            TicketEvent(
                ticket_id=ticket.id,
                user_id=actor_id,
                event_type=TicketEventType.STATUS_CHANGED.value,
                old_value=old_status,
                new_value=new_status.value,
                event_metadata=metadata,
                created_at=now,
            )
        )
        reason = (metadata or {}).get("reason")
        workflow_log.transition(ticket.id, old_status, new_status.value, actor_id, reason)

    async def reopen_ticket(
        self,
        db: AsyncSession,
        actor: Actor,
        ticket_id: UUID,
        *,
        now: Optional[datetime] = None,
    ) -> Ticket:
        """Owner or staff send a ticket back to open; resolved tickets never reopen."""
        ticket, old_status = await self._reopen_tx(db, actor, ticket_id, now or utcnow())
        if old_status != TicketStatus.OPEN.value:
            await self._announce_status(ticket, old_status, actor.id)
        return ticket

    @transactional_database_operation("reopen_ticket")
    async def _reopen_tx(
        self, db: AsyncSession, actor: Actor, ticket_id: UUID, now: datetime
    ) -> Tuple[Ticket, str]:
        ticket = await self._load(db, ticket_id, for_update=True)
        self._check_party(actor, ticket)
        current = TicketStatus(ticket.status)
        if current == TicketStatus.OPEN:
            return ticket, current.value
        try:
            ticket_rules.check_reopen(
                current, ticket.status_changed_at, now, settings.workflow.ticket_reopen_max_days
            )
        except InvalidTransitionError as e:
            workflow_log.rejected(ticket.id, current.value, TicketStatus.OPEN.value, actor.id, str(e))
            raise
        self._apply_status(db, ticket, TicketStatus.OPEN, actor.id, now, {"reason": "reopened"})
        return ticket, current.value

    @transactional_database_operation("archive_ticket")
    async def _archive_tx(self, db: AsyncSession, actor: Actor, ticket_id: UUID, now: datetime) -> Ticket:
        if not actor.is_admin:
            raise AuthorizationError("Only staff can archive tickets")
        ticket = await self._load(db, ticket_id, for_update=True)
        ticket_rules.check_archive(TicketStatus(ticket.status))
        if ticket.is_archived:
            return ticket
        ticket.is_archived = True
        _touch(ticket, now)
        db.add(ticket)
        await TicketEventCRUD.create(
            db,
            obj_in={
                "ticket_id": ticket.id,
                "user_id": actor.id,
                "event_type": TicketEventType.ARCHIVED.value,
                "created_at": now,
            },
        )
        workflow_log.audit(ticket.id, "archived", actor.id)
        return ticket

    async def archive_ticket(
        self, db: AsyncSession, actor: Actor, ticket_id: UUID, *, now: Optional[datetime] = None
    ) -> Ticket:
        ticket = await self._archive_tx(db, actor, ticket_id, now or utcnow())
        await self.bus.publish(TICKETS, ChangeAction.UPDATE, record_of(ticket))
        return ticket

    @transactional_database_operation("delete_ticket")
    async def _delete_tx(self, db: AsyncSession, actor: Actor, ticket_id: UUID, now: datetime) -> dict:
        if not actor.is_admin:
            raise AuthorizationError("Only staff can delete tickets")
        ticket = await self._load(db, ticket_id, for_update=True)
        ticket_rules.check_delete(
            TicketStatus(ticket.status),
            ticket.status_changed_at,
            now,
            settings.workflow.ticket_delete_min_days,
        )
        record = record_of(ticket)
        await TicketCRUD.purge_children(db, ticket.id)
        removed = await NotificationCRUD.delete_by_reference(db, ticket.id)
        await TicketCRUD.delete(db, ticket)
        workflow_log.audit(ticket_id, "deleted", actor.id, notifications_removed=removed)
        return record

    async def delete_ticket(
        self, db: AsyncSession, actor: Actor, ticket_id: UUID, *, now: Optional[datetime] = None
    ) -> None:
        """Hard delete of a closed ticket with its messages, events and notices."""
        record = await self._delete_tx(db, actor, ticket_id, now or utcnow())
        await self.bus.publish(TICKETS, ChangeAction.DELETE, record)

    # ==================== Messages ====================

    async def post_message(
        self, db: AsyncSession, actor: Actor, ticket_id: UUID, message: str
    ) -> TicketMessage:
        ticket, row = await self._post_message_tx(db, actor, ticket_id, message)
        await self.bus.publish(TICKET_MESSAGES, ChangeAction.INSERT, record_of(row))

        preview = row.message[:120]
        if row.is_admin:
            if ticket.user_id != actor.id:
                await self.dispatcher.notify(
                    ticket.user_id,
                    NotificationType.TICKET_MESSAGE,
                    "Nova resposta no seu chamado",
                    preview,
                    reference_id=ticket.id,
                )
        else:
            await self.dispatcher.notify_admins(
                NotificationType.TICKET_MESSAGE,
                f"Nova mensagem: {ticket.title}",
                preview,
                reference_id=ticket.id,
                exclude_user_id=actor.id,
            )
        return row

    @transactional_database_operation("post_ticket_message")
    async def _post_message_tx(
        self, db: AsyncSession, actor: Actor, ticket_id: UUID, message: str
    ) -> Tuple[Ticket, TicketMessage]:
        text = (message or "").strip()
        if not text:
            raise ValidationError("The message cannot be empty")
        if len(text) > settings.workflow.max_message_length:
            raise ValidationError(
                f"Messages are limited to {settings.workflow.max_message_length} characters"
            )
        ticket = await self._load(db, ticket_id)
        self._check_party(actor, ticket)

        now = utcnow()
        row = await TicketMessageCRUD.create(
            db,
            obj_in={
                "ticket_id": ticket.id,
                "user_id": actor.id,
                "message": text,
                "is_admin": actor.is_admin,
                "created_at": now,
            },
        )
        await TicketEventCRUD.create(
            db,
            obj_in={
                "ticket_id": ticket.id,
                "user_id": actor.id,
                "event_type": TicketEventType.COMMENT.value,
                "event_metadata": {"message_id": str(row.id), "is_admin": actor.is_admin},
                "created_at": now,
            },
        )
        return ticket, row

    # ==================== Cross-entity rule ====================

    async def resolve_for_petition(
        self,
        db: AsyncSession,
        opportunity_id: UUID,
        actor_id: Optional[UUID],
        now: datetime,
    ) -> List[Tuple[Ticket, str]]:
        """
        Resolve the appeal/impugnation tickets of an opportunity whose petition
        was just attached.

        Runs inside the caller's transaction and does not commit; the caller
        announces the returned (ticket, old_status) pairs after its commit.
        """
        resolved = []
        for ticket in await TicketCRUD.list_for_opportunity(db, opportunity_id):
            current = TicketStatus(ticket.status)
            if current in ticket_rules.TERMINAL:
                continue
            if base_category(ticket.service_category) not in PETITION_RESOLVED_CATEGORIES:
                continue
            self._apply_status(
                db, ticket, TicketStatus.RESOLVED, actor_id, now, {"reason": "petition_attached"}
            )
            resolved.append((ticket, current.value))
        if resolved:
            await db.flush()
        return resolved

    async def announce_resolved(self, resolved: List[Tuple[Ticket, str]], actor_id: Optional[UUID]) -> None:
        for ticket, old_status in resolved:
            await self._announce_status(ticket, old_status, actor_id)
