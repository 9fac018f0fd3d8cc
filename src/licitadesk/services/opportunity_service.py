"""
Opportunity lifecycle service.

Staff create, edit, publish and rule on opportunities; members of the
owning organization drive the Go/No-Go flow through a fixed set of actions.
Transition decisions come from ``opportunity_rules``. After each commit the
row is relayed on the bus together with its status badge, and a status
change notifies every member of the organization.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

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
from licitadesk.crud import OpportunityCRUD, OrganizationCRUD, TicketCRUD
from licitadesk.db.enums import NotificationType, OpportunityStatus, TicketStatus
from licitadesk.db.models import Opportunity, Ticket, utcnow
from . import opportunity_rules as rules
from .access_service import Actor
from .event_models import OPPORTUNITIES, ChangeAction, record_of
from .notification_service import NotificationDispatcher
from .realtime_bus import RealtimeBus
from .service_catalog import ADMINISTRATIVE_APPEAL, base_category
from .status_badges import badge_for
from .ticket_service import TicketService

logger = logging.getLogger(__name__)
workflow_log = WorkflowLogger("opportunity")

CONTENT_FIELDS = (
    "title",
    "agency_name",
    "closing_date",
    "opportunity_abstract",
    "opportunity_url",
    "estimated_value",
    "winning_value",
    "is_published",
)
DOCUMENT_FIELDS = ("audit_report_path", "petition_path", "contract_path")
EDITABLE_FIELDS = CONTENT_FIELDS + DOCUMENT_FIELDS

APPEAL_DONE = frozenset({TicketStatus.RESOLVED.value, TicketStatus.CLOSED.value})


@dataclass
class _Change:
    """What a committed write needs to announce."""

    opportunity: Opportunity
    old_status: str
    resolved_tickets: List[Tuple[Ticket, str]] = field(default_factory=list)

    @property
    def status_changed(self) -> bool:
        return self.opportunity.status != self.old_status


def _check_version(opportunity: Opportunity, expected_version: Optional[int]) -> None:
    if expected_version is not None and expected_version != opportunity.version:
        raise ConflictError(
            "The opportunity was changed by someone else; reload and try again",
            expected=expected_version,
            actual=opportunity.version,
        )


def _set_status(
    opportunity: Opportunity,
    target: OpportunityStatus,
    actor_id: Optional[UUID],
    now: datetime,
    reason: Optional[str] = None,
) -> None:
    old_status = opportunity.status
    if old_status == target.value:
        return
    opportunity.status = target.value
    opportunity.status_changed_at = now
    workflow_log.transition(opportunity.id, old_status, target.value, actor_id, reason)


def _touch(opportunity: Opportunity, now: datetime) -> None:
    opportunity.version += 1
    opportunity.updated_at = now


def opportunity_event(opportunity: Opportunity) -> Dict[str, Any]:
    record = record_of(opportunity)
    record["badge"] = badge_for(opportunity.status).to_dict()
    return record


class OpportunityService:
    def __init__(
        self,
        bus: RealtimeBus,
        dispatcher: NotificationDispatcher,
        tickets: TicketService,
    ):
        self.bus = bus
        self.dispatcher = dispatcher
        self.tickets = tickets

    # ==================== Loading & access ====================

    @staticmethod
    async def _load(db: AsyncSession, opportunity_id: UUID, *, for_update: bool = False) -> Opportunity:
        opportunity = await OpportunityCRUD.find_by_id(db, opportunity_id, for_update=for_update)
        if opportunity is None:
            raise NotFoundError("Opportunity not found")
        return opportunity

    @staticmethod
    def _check_visible(actor: Actor, opportunity: Opportunity) -> None:
        if actor.is_admin:
            return
        if not opportunity.is_published or opportunity.organization_id != actor.organization_id:
            # Indistinguishable from a missing row for members
            raise NotFoundError("Opportunity not found")

    @staticmethod
    def _require_staff(actor: Actor) -> None:
        if not actor.is_admin:
            raise AuthorizationError("Staff access required")

    async def get_opportunity(self, db: AsyncSession, actor: Actor, opportunity_id: UUID) -> Opportunity:
        opportunity = await self._load(db, opportunity_id)
        self._check_visible(actor, opportunity)
        return opportunity

    @handle_database_exceptions("list_opportunities")
    @log_database_operation("opportunity listing", level="debug")
    async def list_for_member(
        self,
        db: AsyncSession,
        actor: Actor,
        status: Optional[OpportunityStatus] = None,
    ) -> List[Opportunity]:
        """Staff see everything; members see their organization's published opportunities."""
        if actor.is_admin:
            return await OpportunityCRUD.list_all(db, status=status.value if status else None)
        if actor.organization_id is None:
            return []
        return await OpportunityCRUD.list_published_for_organization(
            db, actor.organization_id, statuses=[status.value] if status else None
        )

    async def _has_resolved_appeal(self, db: AsyncSession, opportunity_id: UUID) -> bool:
        for ticket in await TicketCRUD.list_for_opportunity(db, opportunity_id):
            if base_category(ticket.service_category) == ADMINISTRATIVE_APPEAL and ticket.status in APPEAL_DONE:
                return True
        return False

    async def allowed_member_actions(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        today: Optional[date] = None,
    ) -> List[rules.MemberAction]:
        opportunity = await self.get_opportunity(db, actor, opportunity_id)
        return rules.allowed_member_actions(
            OpportunityStatus(opportunity.status),
            closing_date=opportunity.closing_date,
            today=today or utcnow().date(),
            has_resolved_appeal=await self._has_resolved_appeal(db, opportunity.id),
            defeat_confirmed=opportunity.defeat_confirmed,
        )

    # ==================== Announcing ====================

    async def _announce(self, change: _Change, actor: Actor, notify_staff: bool = False) -> None:
        opportunity = change.opportunity
        await self.bus.publish(OPPORTUNITIES, ChangeAction.UPDATE, opportunity_event(opportunity))
        if change.status_changed:
            label = badge_for(opportunity.status).label
            title = "Status da oportunidade atualizado"
            message = f"{opportunity.title}: {label}"
            await self.dispatcher.notify_organization(
                opportunity.organization_id,
                NotificationType.OPPORTUNITY_STATUS,
                title,
                message,
                reference_id=opportunity.id,
            )
            if notify_staff:
                await self.dispatcher.notify_admins(
                    NotificationType.OPPORTUNITY_STATUS,
                    title,
                    f"{message} (por {actor.display_name})",
                    reference_id=opportunity.id,
                    exclude_user_id=actor.id,
                )
        if change.resolved_tickets:
            await self.tickets.announce_resolved(change.resolved_tickets, actor.id)

    # ==================== Staff operations ====================

    @staticmethod
    def _validate_fields(values: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(values) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        if "title" in values:
            title = (values["title"] or "").strip()
            if not title:
                raise ValidationError("An opportunity needs a title")
            values["title"] = title
        if "closing_date" in values and values["closing_date"] is None:
            raise ValidationError("An opportunity needs a closing date")
        for money in ("estimated_value", "winning_value"):
            value = values.get(money)
            if value is not None and Decimal(value) < 0:
                raise ValidationError(f"{money} cannot be negative")
        for document in DOCUMENT_FIELDS:
            if document in values and values[document] is not None:
                values[document] = values[document].strip() or None
        return values

    async def create_opportunity(
        self,
        db: AsyncSession,
        actor: Actor,
        *,
        title: str,
        closing_date: date,
        organization_id: UUID,
        **fields: Any,
    ) -> Opportunity:
        opportunity = await self._create_tx(
            db, actor, title=title, closing_date=closing_date, organization_id=organization_id, **fields
        )
        await self.bus.publish(OPPORTUNITIES, ChangeAction.INSERT, opportunity_event(opportunity))
        return opportunity

    @transactional_database_operation("create_opportunity")
    async def _create_tx(
        self,
        db: AsyncSession,
        actor: Actor,
        *,
        title: str,
        closing_date: date,
        organization_id: UUID,
        **fields: Any,
    ) -> Opportunity:
        self._require_staff(actor)
        values = self._validate_fields({"title": title, "closing_date": closing_date, **fields})
        if await OrganizationCRUD.find_by_id(db, organization_id) is None:
            raise NotFoundError("Organization not found")

        now = utcnow()
        values.setdefault("is_published", False)
        opportunity = await OpportunityCRUD.create(
            db,
            obj_in={
                **values,
                "organization_id": organization_id,
                "status": OpportunityStatus.REVIEW_REQUIRED.value,
                "status_changed_at": now,
                "created_at": now,
                "updated_at": now,
            },
        )
        workflow_log.audit(opportunity.id, "created", actor.id, organization=organization_id)
        return opportunity

    async def update_opportunity(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        changes: Dict[str, Any],
        *,
        status: Optional[OpportunityStatus] = None,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Opportunity:
        """
        Staff edit of content, documents and optionally the status.

        Document attachment rules, in order of precedence:
          * an explicit ``status`` always wins;
          * a first report on a Solicitada opportunity sends it back to review;
          * a first contract on a Vencida/Confirmada opportunity starts execution.
        A first petition resolves the linked appeal/impugnation tickets.
        """
        change = await self._update_tx(
            db, actor, opportunity_id, dict(changes), status, expected_version, now or utcnow()
        )
        await self._announce(change, actor)
        return change.opportunity

    @transactional_database_operation("update_opportunity")
    async def _update_tx(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        changes: Dict[str, Any],
        status: Optional[OpportunityStatus],
        expected_version: Optional[int],
        now: datetime,
    ) -> _Change:
        self._require_staff(actor)
        values = self._validate_fields(changes)
        opportunity = await self._load(db, opportunity_id, for_update=True)
        _check_version(opportunity, expected_version)

        had_report = bool(opportunity.audit_report_path)
        had_petition = bool(opportunity.petition_path)
        had_contract = bool(opportunity.contract_path)
        old_status = opportunity.status

        for name, value in values.items():
            setattr(opportunity, name, value)

        current = OpportunityStatus(old_status)
        try:
            outcome = rules.resolve_staff_update(
                current,
                explicit_status=status,
                report_newly_attached=not had_report and bool(opportunity.audit_report_path),
                contract_newly_attached=not had_contract and bool(opportunity.contract_path),
            )
        except InvalidTransitionError as e:
            workflow_log.rejected(opportunity.id, current.value, status.value if status else None, actor.id, str(e))
            raise
        if outcome.target is not None:
            _set_status(opportunity, outcome.target, actor.id, now, outcome.reason)

        resolved: List[Tuple[Ticket, str]] = []
        if not had_petition and opportunity.petition_path:
            resolved = await self.tickets.resolve_for_petition(db, opportunity.id, actor.id, now)
            workflow_log.audit(opportunity.id, "petition_attached", actor.id, tickets_resolved=len(resolved))

        _touch(opportunity, now)
        db.add(opportunity)
        await db.flush()
        return _Change(opportunity, old_status, resolved)

    async def set_parecer(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        verdict: OpportunityStatus,
        *,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Opportunity:
        """Staff issue the Go / No-Go opinion."""
        change = await self._parecer_tx(db, actor, opportunity_id, verdict, expected_version, now or utcnow())
        await self._announce(change, actor)
        return change.opportunity

    @transactional_database_operation("set_parecer")
    async def _parecer_tx(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        verdict: OpportunityStatus,
        expected_version: Optional[int],
        now: datetime,
    ) -> _Change:
        self._require_staff(actor)
        if verdict not in (OpportunityStatus.GO, OpportunityStatus.NO_GO):
            raise ValidationError("The opinion must be Go or No_Go")
        opportunity = await self._load(db, opportunity_id, for_update=True)
        _check_version(opportunity, expected_version)
        current = OpportunityStatus(opportunity.status)
        if current not in rules.PARECER_SOURCES:
            workflow_log.rejected(opportunity.id, current.value, verdict.value, actor.id, "parecer")
            raise InvalidTransitionError(
                "An opinion can only be issued while the opportunity is under review",
                current=current.value,
                requested=verdict.value,
            )
        old_status = opportunity.status
        _set_status(opportunity, verdict, actor.id, now, "parecer")
        _touch(opportunity, now)
        db.add(opportunity)
        await db.flush()
        return _Change(opportunity, old_status)

    async def reopen_for_analysis(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        *,
        now: Optional[datetime] = None,
    ) -> Opportunity:
        change = await self._reopen_tx(db, actor, opportunity_id, now or utcnow())
        await self._announce(change, actor)
        return change.opportunity

    @transactional_database_operation("reopen_opportunity")
    async def _reopen_tx(self, db: AsyncSession, actor: Actor, opportunity_id: UUID, now: datetime) -> _Change:
        self._require_staff(actor)
        opportunity = await self._load(db, opportunity_id, for_update=True)
        old_status = opportunity.status
        target = rules.check_reopen(OpportunityStatus(old_status))
        _set_status(opportunity, target, actor.id, now, "reopened_for_analysis")
        opportunity.defeat_confirmed = False
        _touch(opportunity, now)
        db.add(opportunity)
        await db.flush()
        return _Change(opportunity, old_status)

    async def toggle_publish(self, db: AsyncSession, actor: Actor, opportunity_id: UUID) -> Opportunity:
        opportunity = await self._toggle_publish_tx(db, actor, opportunity_id)
        await self.bus.publish(OPPORTUNITIES, ChangeAction.UPDATE, opportunity_event(opportunity))
        return opportunity

    @transactional_database_operation("toggle_publish")
    async def _toggle_publish_tx(self, db: AsyncSession, actor: Actor, opportunity_id: UUID) -> Opportunity:
        self._require_staff(actor)
        opportunity = await self._load(db, opportunity_id, for_update=True)
        opportunity.is_published = not opportunity.is_published
        _touch(opportunity, utcnow())
        db.add(opportunity)
        workflow_log.audit(opportunity.id, "published" if opportunity.is_published else "unpublished", actor.id)
        return opportunity

    async def delete_opportunity(
        self, db: AsyncSession, actor: Actor, opportunity_id: UUID, *, force: bool = False
    ) -> None:
        record = await self._delete_tx(db, actor, opportunity_id, force)
        await self.bus.publish(OPPORTUNITIES, ChangeAction.DELETE, record)

    @transactional_database_operation("delete_opportunity")
    async def _delete_tx(
        self, db: AsyncSession, actor: Actor, opportunity_id: UUID, force: bool
    ) -> Dict[str, Any]:
        self._require_staff(actor)
        opportunity = await self._load(db, opportunity_id, for_update=True)
        linked = await TicketCRUD.count(db, filters={"opportunity_id": opportunity.id})
        if linked and not force:
            raise ConflictError(f"The opportunity still has {linked} linked ticket(s)")
        if linked:
            await OpportunityCRUD.unlink_tickets(db, opportunity.id)
        record = record_of(opportunity)
        await OpportunityCRUD.purge_children(db, opportunity.id)
        await OpportunityCRUD.delete(db, opportunity)
        workflow_log.audit(opportunity_id, "deleted", actor.id, unlinked_tickets=linked, forced=force)
        return record

    # ==================== Member actions ====================

    async def _member_action(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        action: rules.MemberAction,
        today: Optional[date],
        now: Optional[datetime],
    ) -> Opportunity:
        now = now or utcnow()
        change = await self._member_action_tx(db, actor, opportunity_id, action, today or now.date(), now)
        await self._announce(change, actor, notify_staff=True)
        return change.opportunity

    @transactional_database_operation("opportunity_member_action")
    async def _member_action_tx(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        action: rules.MemberAction,
        today: date,
        now: datetime,
    ) -> _Change:
        opportunity = await self._load(db, opportunity_id, for_update=True)
        self._check_visible(actor, opportunity)
        current = OpportunityStatus(opportunity.status)

        has_resolved_appeal = False
        if action == rules.MemberAction.REVERSE_DEFEAT:
            has_resolved_appeal = await self._has_resolved_appeal(db, opportunity.id)

        try:
            target = rules.member_target(
                action,
                current,
                closing_date=opportunity.closing_date,
                today=today,
                has_resolved_appeal=has_resolved_appeal,
            )
        except InvalidTransitionError as e:
            workflow_log.rejected(opportunity.id, current.value, e.requested, actor.id, str(e))
            raise

        old_status = opportunity.status
        if action == rules.MemberAction.REQUEST_REPORT:
            opportunity.report_requested_at = now
        elif action == rules.MemberAction.PARTICIPATE:
            # Petitions belong to the previous round
            opportunity.petition_path = None
        elif action == rules.MemberAction.CONFIRM_DEFEAT:
            opportunity.defeat_confirmed = True
            workflow_log.audit(opportunity.id, "defeat_confirmed", actor.id)
        elif action == rules.MemberAction.REVERSE_DEFEAT:
            opportunity.defeat_confirmed = False

        _set_status(opportunity, target, actor.id, now, action.value)
        _touch(opportunity, now)
        db.add(opportunity)
        await db.flush()
        return _Change(opportunity, old_status)

    async def request_report(
        self, db: AsyncSession, actor: Actor, opportunity_id: UUID, *, now: Optional[datetime] = None
    ) -> Opportunity:
        return await self._member_action(db, actor, opportunity_id, rules.MemberAction.REQUEST_REPORT, None, now)

    async def participate(
        self, db: AsyncSession, actor: Actor, opportunity_id: UUID, *, now: Optional[datetime] = None
    ) -> Opportunity:
        return await self._member_action(db, actor, opportunity_id, rules.MemberAction.PARTICIPATE, None, now)

    async def reject(
        self, db: AsyncSession, actor: Actor, opportunity_id: UUID, *, now: Optional[datetime] = None
    ) -> Opportunity:
        return await self._member_action(db, actor, opportunity_id, rules.MemberAction.REJECT, None, now)

    async def record_outcome(
        self,
        db: AsyncSession,
        actor: Actor,
        opportunity_id: UUID,
        won: bool,
        *,
        today: Optional[date] = None,
        now: Optional[datetime] = None,
    ) -> Opportunity:
        action = rules.MemberAction.RECORD_WIN if won else rules.MemberAction.RECORD_LOSS
        return await self._member_action(db, actor, opportunity_id, action, today, now)

    async def reverse_defeat(
        self, db: AsyncSession, actor: Actor, opportunity_id: UUID, *, now: Optional[datetime] = None
    ) -> Opportunity:
        return await self._member_action(db, actor, opportunity_id, rules.MemberAction.REVERSE_DEFEAT, None, now)

    async def confirm_defeat(
        self, db: AsyncSession, actor: Actor, opportunity_id: UUID, *, now: Optional[datetime] = None
    ) -> Opportunity:
        return await self._member_action(db, actor, opportunity_id, rules.MemberAction.CONFIRM_DEFEAT, None, now)
