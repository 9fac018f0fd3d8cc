"""
Opportunity lifecycle rules.

Pure functions: no database access, no clock. The service layer loads the
row, asks these rules what the target status is, then writes it.

Flow:
    Review_Required -> Solicitada -> {Go, No_Go} -> Participando
        -> {Vencida, Perdida} -> {Confirmada, Em_Execucao}
plus Rejeitada, and the two reopen paths (Solicitada -> Review_Required on
report attachment, staff "reopen for analysis").
"""

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from licitadesk.core.exceptions import InvalidTransitionError
from licitadesk.db.enums import OpportunityStatus as S


class MemberAction(str, Enum):
    REQUEST_REPORT = "request_report"
    PARTICIPATE = "participate"
    REJECT = "reject"
    RECORD_WIN = "record_win"
    RECORD_LOSS = "record_loss"
    REVERSE_DEFEAT = "reverse_defeat"
    CONFIRM_DEFEAT = "confirm_defeat"


MEMBER_REJECTABLE: FrozenSet[S] = frozenset({S.REVIEW_REQUIRED, S.SOLICITADA, S.GO, S.NO_GO})
PARECER_SOURCES: FrozenSet[S] = frozenset({S.REVIEW_REQUIRED, S.SOLICITADA})
REOPENABLE: FrozenSet[S] = frozenset({S.REJEITADA, S.PARTICIPANDO, S.VENCIDA, S.PERDIDA})
CONTRACT_DRIVEN: FrozenSet[S] = frozenset({S.VENCIDA, S.CONFIRMADA})

# Statuses staff may set explicitly from each status
STAFF_TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.REVIEW_REQUIRED: frozenset({S.GO, S.NO_GO, S.REJEITADA}),
    S.SOLICITADA: frozenset({S.GO, S.NO_GO, S.REVIEW_REQUIRED, S.REJEITADA}),
    S.GO: frozenset({S.REJEITADA}),
    S.NO_GO: frozenset({S.REJEITADA}),
    S.PARTICIPANDO: frozenset({S.REJEITADA, S.REVIEW_REQUIRED}),
    S.VENCIDA: frozenset({S.CONFIRMADA, S.EM_EXECUCAO, S.REJEITADA, S.REVIEW_REQUIRED}),
    S.PERDIDA: frozenset({S.REJEITADA, S.REVIEW_REQUIRED}),
    S.REJEITADA: frozenset({S.REVIEW_REQUIRED}),
    S.CONFIRMADA: frozenset({S.EM_EXECUCAO}),
    S.EM_EXECUCAO: frozenset(),
}


def outcome_open(closing_date: date, today: date) -> bool:
    """Outcomes may be recorded from the day after the closing date."""
    return today >= closing_date + timedelta(days=1)


def member_target(
    action: MemberAction,
    current: S,
    *,
    closing_date: date,
    today: date,
    has_resolved_appeal: bool = False,
) -> S:
    """
    Target status of a member action, or InvalidTransitionError.

    ``has_resolved_appeal`` is whether a linked administrative-appeal ticket
    exists in resolved/closed state; only reversing a defeat needs it.
    """
    def refuse(reason: str, requested: Optional[S] = None) -> InvalidTransitionError:
        return InvalidTransitionError(
            reason,
            current=current.value,
            requested=requested.value if requested else action.value,
        )

    if action == MemberAction.REQUEST_REPORT:
        if current != S.REVIEW_REQUIRED:
            raise refuse("A report can only be requested while the opportunity is under review", S.SOLICITADA)
        return S.SOLICITADA

    if action == MemberAction.PARTICIPATE:
        if current == S.NO_GO:
            raise refuse(
                "A No-Go opportunity cannot be joined; request an impugnation or reject it",
                S.PARTICIPANDO,
            )
        if current != S.GO:
            raise refuse("Only a Go opportunity can be joined", S.PARTICIPANDO)
        return S.PARTICIPANDO

    if action == MemberAction.REJECT:
        if current not in MEMBER_REJECTABLE:
            raise refuse("This opportunity can no longer be rejected", S.REJEITADA)
        return S.REJEITADA

    if action in (MemberAction.RECORD_WIN, MemberAction.RECORD_LOSS):
        target = S.VENCIDA if action == MemberAction.RECORD_WIN else S.PERDIDA
        if current != S.PARTICIPANDO:
            raise refuse("Outcomes can only be recorded while participating", target)
        if not outcome_open(closing_date, today):
            raise refuse(
                f"The outcome can only be recorded after {closing_date + timedelta(days=1)}",
                target,
            )
        return target

    if action == MemberAction.REVERSE_DEFEAT:
        if current != S.PERDIDA:
            raise refuse("Only a lost opportunity can be reversed", S.VENCIDA)
        if not has_resolved_appeal:
            raise refuse(
                "Reversing a defeat requires a resolved administrative appeal ticket",
                S.VENCIDA,
            )
        return S.VENCIDA

    if action == MemberAction.CONFIRM_DEFEAT:
        if current != S.PERDIDA:
            raise refuse("Only a lost opportunity can have its defeat confirmed")
        return S.PERDIDA

    raise refuse(f"Unknown action {action}")


def allowed_member_actions(
    current: S,
    *,
    closing_date: date,
    today: date,
    has_resolved_appeal: bool = False,
    defeat_confirmed: bool = False,
) -> List[MemberAction]:
    """Actions the member UI should offer right now."""
    allowed = []
    for action in MemberAction:
        if action == MemberAction.CONFIRM_DEFEAT and defeat_confirmed:
            continue
        try:
            member_target(
                action,
                current,
                closing_date=closing_date,
                today=today,
                has_resolved_appeal=has_resolved_appeal,
            )
        except InvalidTransitionError:
            continue
        allowed.append(action)
    return allowed


def check_staff_transition(current: S, target: S) -> None:
    if target == current:
        return
    if target not in STAFF_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot move an opportunity from {current.value} to {target.value}",
            current=current.value,
            requested=target.value,
        )


@dataclass(frozen=True)
class StaffUpdateOutcome:
    target: Optional[S]
    reason: Optional[str] = None


def resolve_staff_update(
    current: S,
    *,
    explicit_status: Optional[S],
    report_newly_attached: bool,
    contract_newly_attached: bool,
) -> StaffUpdateOutcome:
    """
    Decide the status a staff edit ends in.

    An explicit status always wins, even when it equals the current one;
    the automatic rules only apply when staff left the status alone.
    """
    if explicit_status is not None:
        check_staff_transition(current, explicit_status)
        if explicit_status == current:
            return StaffUpdateOutcome(None)
        return StaffUpdateOutcome(explicit_status, "staff")

    if report_newly_attached and current == S.SOLICITADA:
        return StaffUpdateOutcome(S.REVIEW_REQUIRED, "report_attached")

    if contract_newly_attached and current in CONTRACT_DRIVEN:
        return StaffUpdateOutcome(S.EM_EXECUCAO, "contract_attached")

    return StaffUpdateOutcome(None)


def check_reopen(current: S) -> S:
    if current not in REOPENABLE:
        raise InvalidTransitionError(
            f"An opportunity in {current.value} cannot be reopened for analysis",
            current=current.value,
            requested=S.REVIEW_REQUIRED.value,
        )
    return S.REVIEW_REQUIRED
