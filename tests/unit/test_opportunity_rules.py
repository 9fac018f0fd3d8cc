"""
Unit tests for the opportunity lifecycle rules.

Tests cover:
- Member actions and their targets
- The closing-date gate on outcomes
- Defeat reversal requiring a resolved appeal
- Staff update precedence (explicit status over automatic rules)
- Reopen for analysis
"""

from datetime import date

import pytest

from licitadesk.core.exceptions import InvalidTransitionError
from licitadesk.db.enums import OpportunityStatus as S
from licitadesk.services.opportunity_rules import (
    MemberAction,
    allowed_member_actions,
    check_reopen,
    member_target,
    outcome_open,
    resolve_staff_update,
)

CLOSING = date(2025, 3, 10)


def target(action, current, today=CLOSING, **kwargs):
    return member_target(action, current, closing_date=CLOSING, today=today, **kwargs)


class TestMemberActions:
    def test_request_report_from_review(self):
        assert target(MemberAction.REQUEST_REPORT, S.REVIEW_REQUIRED) == S.SOLICITADA

    def test_request_report_twice_is_refused(self):
        with pytest.raises(InvalidTransitionError):
            target(MemberAction.REQUEST_REPORT, S.SOLICITADA)

    def test_participate_from_go(self):
        assert target(MemberAction.PARTICIPATE, S.GO) == S.PARTICIPANDO

    def test_participate_from_no_go_is_refused(self):
        with pytest.raises(InvalidTransitionError, match="No-Go") as exc_info:
            target(MemberAction.PARTICIPATE, S.NO_GO)
        assert exc_info.value.extra["current"] == S.NO_GO.value

    @pytest.mark.parametrize("current", [S.REVIEW_REQUIRED, S.SOLICITADA, S.GO, S.NO_GO])
    def test_reject_from_pre_engagement_states(self, current):
        assert target(MemberAction.REJECT, current) == S.REJEITADA

    @pytest.mark.parametrize("current", [S.PARTICIPANDO, S.VENCIDA, S.REJEITADA, S.EM_EXECUCAO])
    def test_reject_after_engagement_is_refused(self, current):
        with pytest.raises(InvalidTransitionError):
            target(MemberAction.REJECT, current)


class TestOutcomes:
    def test_outcome_closed_on_closing_date(self):
        assert outcome_open(CLOSING, CLOSING) is False

    def test_outcome_open_the_day_after(self):
        assert outcome_open(CLOSING, date(2025, 3, 11)) is True

    def test_win_before_closing_plus_one_is_refused(self):
        with pytest.raises(InvalidTransitionError, match="after 2025-03-11"):
            target(MemberAction.RECORD_WIN, S.PARTICIPANDO, today=CLOSING)

    def test_win_and_loss_after_closing(self):
        today = date(2025, 3, 11)
        assert target(MemberAction.RECORD_WIN, S.PARTICIPANDO, today=today) == S.VENCIDA
        assert target(MemberAction.RECORD_LOSS, S.PARTICIPANDO, today=today) == S.PERDIDA

    def test_outcome_requires_participation(self):
        with pytest.raises(InvalidTransitionError):
            target(MemberAction.RECORD_WIN, S.GO, today=date(2025, 4, 1))


class TestDefeatReversal:
    def test_reversal_needs_resolved_appeal(self):
        with pytest.raises(InvalidTransitionError, match="administrative appeal"):
            target(MemberAction.REVERSE_DEFEAT, S.PERDIDA, has_resolved_appeal=False)

    def test_reversal_with_resolved_appeal(self):
        assert target(MemberAction.REVERSE_DEFEAT, S.PERDIDA, has_resolved_appeal=True) == S.VENCIDA

    def test_confirm_defeat_keeps_status(self):
        assert target(MemberAction.CONFIRM_DEFEAT, S.PERDIDA) == S.PERDIDA


class TestAllowedActions:
    def test_review_required(self):
        actions = allowed_member_actions(S.REVIEW_REQUIRED, closing_date=CLOSING, today=CLOSING)
        assert actions == [MemberAction.REQUEST_REPORT, MemberAction.REJECT]

    def test_lost_with_confirmed_defeat_hides_confirm(self):
        actions = allowed_member_actions(
            S.PERDIDA, closing_date=CLOSING, today=CLOSING, defeat_confirmed=True
        )
        assert MemberAction.CONFIRM_DEFEAT not in actions
        assert MemberAction.REVERSE_DEFEAT not in actions

    def test_terminal_status_offers_nothing(self):
        assert allowed_member_actions(S.EM_EXECUCAO, closing_date=CLOSING, today=CLOSING) == []


class TestStaffUpdate:
    def test_report_on_solicitada_returns_to_review(self):
        outcome = resolve_staff_update(
            S.SOLICITADA, explicit_status=None, report_newly_attached=True, contract_newly_attached=False
        )
        assert outcome.target == S.REVIEW_REQUIRED
        assert outcome.reason == "report_attached"

    def test_explicit_status_wins_over_report_rule(self):
        outcome = resolve_staff_update(
            S.SOLICITADA, explicit_status=S.GO, report_newly_attached=True, contract_newly_attached=False
        )
        assert outcome.target == S.GO

    def test_explicit_same_status_suppresses_report_rule(self):
        outcome = resolve_staff_update(
            S.SOLICITADA,
            explicit_status=S.SOLICITADA,
            report_newly_attached=True,
            contract_newly_attached=False,
        )
        assert outcome.target is None

    def test_report_outside_solicitada_changes_nothing(self):
        outcome = resolve_staff_update(
            S.GO, explicit_status=None, report_newly_attached=True, contract_newly_attached=False
        )
        assert outcome.target is None

    @pytest.mark.parametrize("current", [S.VENCIDA, S.CONFIRMADA])
    def test_contract_starts_execution(self, current):
        outcome = resolve_staff_update(
            current, explicit_status=None, report_newly_attached=False, contract_newly_attached=True
        )
        assert outcome.target == S.EM_EXECUCAO

    def test_illegal_explicit_status(self):
        with pytest.raises(InvalidTransitionError):
            resolve_staff_update(
                S.GO, explicit_status=S.VENCIDA, report_newly_attached=False, contract_newly_attached=False
            )


class TestReopen:
    @pytest.mark.parametrize("current", [S.REJEITADA, S.PARTICIPANDO, S.VENCIDA, S.PERDIDA])
    def test_reopenable(self, current):
        assert check_reopen(current) == S.REVIEW_REQUIRED

    @pytest.mark.parametrize("current", [S.GO, S.EM_EXECUCAO, S.CONFIRMADA])
    def test_not_reopenable(self, current):
        with pytest.raises(InvalidTransitionError):
            check_reopen(current)
