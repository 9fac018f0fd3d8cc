"""
Access authorization gate.

The effective tier is derived from the profile flags and the clock on every
check and never stored. An expired trial is deactivated lazily, as a write
made by the check that notices it.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.core.config import settings
from licitadesk.core.decorators import transactional_database_operation
from licitadesk.core.exceptions import AuthorizationError, StaleIdentityError
from licitadesk.crud import ProfileCRUD
from licitadesk.db.enums import AccessTier, NotificationType
from licitadesk.db.models import Profile, utcnow
from .notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessState:
    is_admin: bool
    is_paid_subscriber: bool
    has_full_access: bool
    is_free_authorized: bool
    trial_expired: bool
    had_trial: bool
    tier: AccessTier


def trial_valid(profile: Profile, now: datetime) -> bool:
    return bool(
        profile.trial_active
        and profile.trial_expires_at is not None
        and profile.trial_expires_at > now
    )


def evaluate_access(profile: Profile, is_admin: bool, now: datetime) -> AccessState:
    """Pure tier computation from a profile snapshot."""
    paid = bool(profile.subscription_active)
    trial = trial_valid(profile, now)
    trial_expired = bool(
        profile.trial_active
        and profile.trial_expires_at is not None
        and profile.trial_expires_at <= now
    )
    full = paid or trial
    free_authorized = is_admin or full or bool(profile.access_authorized)

    if is_admin:
        tier = AccessTier.ADMIN
    elif paid:
        tier = AccessTier.PAID_SUBSCRIBER
    elif trial:
        tier = AccessTier.TRIAL
    elif profile.access_authorized:
        tier = AccessTier.FREE_AUTHORIZED
    else:
        tier = AccessTier.FREE_PENDING

    return AccessState(
        is_admin=is_admin,
        is_paid_subscriber=paid,
        has_full_access=full,
        is_free_authorized=free_authorized,
        trial_expired=trial_expired,
        had_trial=profile.trial_expires_at is not None,
        tier=tier,
    )


@dataclass
class Actor:
    """
    The authenticated caller: live profile plus the access state of this request.

    Identity fields are copied at construction so they stay readable after a
    rolled-back unit of work expires the profile instance.
    """

    profile: Profile
    access: AccessState
    id: UUID = field(init=False)
    organization_id: Optional[UUID] = field(init=False)
    display_name: str = field(init=False)

    def __post_init__(self) -> None:
        self.id = self.profile.id
        self.organization_id = self.profile.organization_id
        self.display_name = self.profile.full_name or self.profile.email

    @property
    def is_admin(self) -> bool:
        return self.access.is_admin


def require_member_area(actor: Actor) -> Actor:
    if not actor.access.is_free_authorized:
        raise AuthorizationError(
            "Your account is waiting for authorization by our team",
            upsell="contact_staff",
        )
    return actor


def require_full_access(actor: Actor) -> Actor:
    if actor.access.is_admin or actor.access.has_full_access:
        return actor
    # A trial is granted once; after it, only a subscription is offered
    upsell = "subscribe" if actor.access.had_trial else "trial"
    raise AuthorizationError("This feature requires an active subscription or trial", upsell=upsell)


def require_admin(actor: Actor) -> Actor:
    if not actor.access.is_admin:
        raise AuthorizationError("Staff access required")
    return actor


class AccessService:
    def __init__(self, dispatcher: NotificationDispatcher):
        self.dispatcher = dispatcher

    async def ensure_profile_exists(self, db: AsyncSession, user_id: UUID) -> Profile:
        profile = await ProfileCRUD.find_by_id(db, user_id)
        if profile is None:
            logger.warning(f"Stale identity: no profile for user {user_id}")
            raise StaleIdentityError()
        return profile

    @transactional_database_operation("load_actor")
    async def load_actor(
        self, db: AsyncSession, user_id: UUID, now: Optional[datetime] = None
    ) -> Actor:
        """Resolve the caller and evaluate access, deactivating an expired trial."""
        now = now or utcnow()
        profile = await self.ensure_profile_exists(db, user_id)
        is_admin = await ProfileCRUD.is_admin(db, user_id)
        access = evaluate_access(profile, is_admin, now)

        if access.trial_expired:
            profile.trial_active = False
            profile.updated_at = now
            db.add(profile)
            await db.flush()
            logger.info(f"Trial expired for user {user_id}, deactivated")

        return Actor(profile=profile, access=access)

    async def activate_trial(
        self, db: AsyncSession, user_id: UUID, now: Optional[datetime] = None
    ) -> tuple[Profile, bool]:
        """
        Grant a trial of ``trial_length_days``.

        Returns:
            (profile, activated); ``activated`` is False when the profile
            already had a trial or a subscription.
        """
        profile, activated = await self._activate_trial_tx(db, user_id, now or utcnow())
        if activated:
            name = profile.full_name or profile.email
            await self.dispatcher.notify_admins(
                NotificationType.NEW_ACCOUNT,
                "Novo teste gratuito",
                f"{name} iniciou o período de teste.",
                reference_id=profile.id,
            )
        return profile, activated

    @transactional_database_operation("activate_trial")
    async def _activate_trial_tx(
        self, db: AsyncSession, user_id: UUID, now: datetime
    ) -> tuple[Profile, bool]:
        profile = await ProfileCRUD.find_by_id(db, user_id, for_update=True)
        if profile is None:
            raise StaleIdentityError()
        if profile.subscription_active or profile.trial_active or profile.trial_expires_at:
            return profile, False

        profile.trial_active = True
        profile.trial_expires_at = now + timedelta(days=settings.workflow.trial_length_days)
        profile.access_authorized = True
        profile.updated_at = now
        db.add(profile)
        await db.flush()
        logger.info(f"Trial activated for user {user_id} until {profile.trial_expires_at}")
        return profile, True
