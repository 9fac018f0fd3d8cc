"""
Payment provider webhook.

Deliveries are at-least-once. Each event id is written to a ledger in the
same transaction as its effect, so a redelivery (even a concurrent one) is
acknowledged as a duplicate instead of being applied twice.
"""

import hmac
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.core.config import settings
from licitadesk.core.decorators import transactional_database_operation
from licitadesk.core.exceptions import AuthenticationError, NotFoundError, ValidationError
from licitadesk.crud import ProcessedWebhookEventCRUD, ProfileCRUD
from licitadesk.db.enums import NotificationType
from licitadesk.db.models import Profile, utcnow
from .notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

ACTIVATING_EVENTS = frozenset({"PAYMENT_CONFIRMED", "PAYMENT_RECEIVED"})
CANCELLING_EVENTS = frozenset({"SUBSCRIPTION_DELETED", "SUBSCRIPTION_INACTIVATED", "PAYMENT_REFUNDED"})

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

PROCESSED = "processed"
DUPLICATE = "duplicate"
IGNORED = "ignored"


def verify_token(received: Optional[str], expected: Optional[str] = None) -> None:
    expected = settings.webhook.access_token if expected is None else expected
    if not expected or not received or not hmac.compare_digest(received, expected):
        logger.warning("Payment webhook rejected: invalid access token")
        raise AuthenticationError("Invalid webhook token")


def check_replay_window(date_created: Optional[str], now: datetime) -> None:
    """Reject events older than the max age or too far in the future."""
    if not date_created:
        return
    try:
        created = datetime.strptime(date_created, TIMESTAMP_FORMAT)
    except ValueError as e:
        raise ValidationError(f"Invalid event timestamp: {date_created}") from e
    age = now - created
    if age > timedelta(seconds=settings.webhook.max_age_seconds):
        raise ValidationError("Request expired")
    if age < -timedelta(seconds=settings.webhook.max_future_skew_seconds):
        raise ValidationError("Event timestamp is in the future")


def _customer_email(payload: Dict[str, Any]) -> Optional[str]:
    for section in ("payment", "subscription"):
        data = payload.get(section) or {}
        if data.get("customerEmail"):
            return data["customerEmail"]
    return payload.get("customerEmail")


class PaymentWebhookService:
    def __init__(self, dispatcher: NotificationDispatcher):
        self.dispatcher = dispatcher

    async def process_payment_event(
        self, db: AsyncSession, payload: Dict[str, Any], now: Optional[datetime] = None
    ) -> str:
        """
        Apply one webhook delivery.

        Returns:
            "processed", "duplicate" or "ignored"
        """
        now = now or utcnow()
        event_type = payload.get("event") or ""
        check_replay_window(payload.get("dateCreated"), now)

        if event_type not in ACTIVATING_EVENTS | CANCELLING_EVENTS:
            logger.info(f"Payment webhook: event {event_type or '<missing>'} ignored")
            return IGNORED

        event_id = payload.get("id")
        if not event_id:
            raise ValidationError("Missing event id")
        email = _customer_email(payload)
        if not email:
            raise ValidationError("No customer email")

        try:
            profile = await self._apply_tx(db, event_id, event_type, payload, email, now)
        except IntegrityError:
            logger.info(f"Payment webhook: event {event_id} already processed (concurrent request)")
            return DUPLICATE
        if profile is None:
            return DUPLICATE

        activated = event_type in ACTIVATING_EVENTS
        name = profile.full_name or profile.email
        await self.dispatcher.notify_admins(
            NotificationType.SUBSCRIPTION,
            "Assinatura confirmada" if activated else "Assinatura cancelada",
            f"{name} ({event_type})",
            reference_id=profile.id,
        )
        if activated:
            await self.dispatcher.notify(
                profile.id,
                NotificationType.SUBSCRIPTION,
                "Assinatura confirmada",
                "Sua assinatura foi confirmada. Bem-vindo!",
            )
        return PROCESSED

    @transactional_database_operation("process_payment_event")
    async def _apply_tx(
        self,
        db: AsyncSession,
        event_id: str,
        event_type: str,
        payload: Dict[str, Any],
        email: str,
        now: datetime,
    ) -> Optional[Profile]:
        if await ProcessedWebhookEventCRUD.find_by_event_id(db, event_id) is not None:
            logger.info(f"Payment webhook: event {event_id} already processed, skipping")
            return None

        profile = await ProfileCRUD.find_by_email(db, email)
        if profile is None:
            logger.error(f"Payment webhook: no profile for event {event_id}")
            raise NotFoundError("User not found")

        await ProcessedWebhookEventCRUD.create(
            db,
            obj_in={
                "event_id": event_id,
                "event_type": event_type,
                "payment_id": (payload.get("payment") or {}).get("id"),
                "customer_email": email,
                "processed_at": now,
            },
        )

        if event_type in ACTIVATING_EVENTS:
            profile.subscription_active = True
            profile.access_authorized = True
            profile.contract_accepted = True
            profile.pricing_accepted = True
        else:
            profile.subscription_active = False
        profile.updated_at = now
        db.add(profile)
        await db.flush()
        logger.info(
            f"Payment webhook: {event_type} applied to profile {profile.id} "
            f"(subscription_active={profile.subscription_active})"
        )
        return profile
