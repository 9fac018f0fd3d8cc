"""
Unit tests for access tier evaluation and the area gates.

Profiles are built in memory; no database is involved.
"""

from datetime import datetime, timedelta

import pytest

from licitadesk.core.exceptions import AuthorizationError
from licitadesk.db.enums import AccessTier
from licitadesk.db.models import Profile
from licitadesk.services.access_service import (
    Actor,
    evaluate_access,
    require_admin,
    require_full_access,
    require_member_area,
)

NOW = datetime(2025, 6, 1, 12, 0, 0)


def make_profile(**flags) -> Profile:
    return Profile(email="teste@empresa.com.br", full_name="Teste", **flags)


def make_actor(is_admin: bool = False, **flags) -> Actor:
    profile = make_profile(**flags)
    return Actor(profile=profile, access=evaluate_access(profile, is_admin, NOW))


class TestEvaluateAccess:
    def test_pending_account(self):
        state = evaluate_access(make_profile(), False, NOW)
        assert state.tier == AccessTier.FREE_PENDING
        assert not state.is_free_authorized
        assert not state.has_full_access

    def test_authorized_free_account(self):
        state = evaluate_access(make_profile(access_authorized=True), False, NOW)
        assert state.tier == AccessTier.FREE_AUTHORIZED
        assert state.is_free_authorized
        assert not state.has_full_access

    def test_paid_subscriber(self):
        state = evaluate_access(make_profile(subscription_active=True), False, NOW)
        assert state.tier == AccessTier.PAID_SUBSCRIBER
        assert state.is_paid_subscriber
        assert state.has_full_access
        assert state.is_free_authorized

    def test_valid_trial(self):
        profile = make_profile(trial_active=True, trial_expires_at=NOW + timedelta(days=3))
        state = evaluate_access(profile, False, NOW)
        assert state.tier == AccessTier.TRIAL
        assert state.has_full_access
        assert not state.is_paid_subscriber
        assert not state.trial_expired

    def test_expired_trial(self):
        profile = make_profile(
            trial_active=True,
            trial_expires_at=NOW - timedelta(seconds=1),
            access_authorized=True,
        )
        state = evaluate_access(profile, False, NOW)
        assert state.trial_expired
        assert not state.has_full_access
        assert state.had_trial
        assert state.tier == AccessTier.FREE_AUTHORIZED

    def test_trial_expiring_exactly_now_is_expired(self):
        profile = make_profile(trial_active=True, trial_expires_at=NOW)
        assert evaluate_access(profile, False, NOW).trial_expired

    def test_admin_without_subscription(self):
        state = evaluate_access(make_profile(), True, NOW)
        assert state.tier == AccessTier.ADMIN
        assert state.is_free_authorized
        assert not state.has_full_access


class TestGates:
    def test_member_area_refuses_pending(self):
        with pytest.raises(AuthorizationError) as exc_info:
            require_member_area(make_actor())
        assert exc_info.value.extra["upsell"] == "contact_staff"

    def test_member_area_admits_authorized(self):
        actor = make_actor(access_authorized=True)
        assert require_member_area(actor) is actor

    def test_full_access_offers_trial_first(self):
        with pytest.raises(AuthorizationError) as exc_info:
            require_full_access(make_actor(access_authorized=True))
        assert exc_info.value.extra["upsell"] == "trial"

    def test_full_access_offers_subscription_after_trial(self):
        actor = make_actor(
            access_authorized=True,
            trial_active=False,
            trial_expires_at=NOW - timedelta(days=10),
        )
        with pytest.raises(AuthorizationError) as exc_info:
            require_full_access(actor)
        assert exc_info.value.extra["upsell"] == "subscribe"

    def test_full_access_admits_admin(self):
        actor = make_actor(is_admin=True)
        assert require_full_access(actor) is actor

    def test_admin_gate(self):
        require_admin(make_actor(is_admin=True))
        with pytest.raises(AuthorizationError):
            require_admin(make_actor(subscription_active=True))

    def test_actor_snapshots_identity(self):
        actor = make_actor(access_authorized=True)
        assert actor.id == actor.profile.id
        assert actor.display_name == "Teste"
