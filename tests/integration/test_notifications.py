"""
Integration tests for notifications and the isolated dispatcher.
"""

from uuid import uuid4

import pytest

from licitadesk.db.enums import NotificationType
from licitadesk.services.event_models import NOTIFICATIONS
from licitadesk.services.notification_service import NotificationDispatcher
from tests.factories import ProfileFactory


class TestNotificationService:
    @pytest.mark.asyncio
    async def test_clear_by_reference_is_idempotent(self, db_session, services, member):
        reference, other = uuid4(), uuid4()
        notifications = services.notifications
        for ref in (reference, reference, other):
            await notifications.notify(
                db_session, member.id, NotificationType.TICKET_STATUS, "Status", "Atualizado", ref
            )

        assert await notifications.clear_by_reference(db_session, member.id, reference) == 2
        assert await notifications.clear_by_reference(db_session, member.id, reference) == 0
        assert await notifications.unread_count(db_session, member.id) == 1

        unread = await notifications.list_for_user(db_session, member.id, unread_only=True)
        assert [n.reference_id for n in unread] == [other]

    @pytest.mark.asyncio
    async def test_clearing_only_touches_the_caller(self, db_session, services, member, colleague):
        reference = uuid4()
        await services.notifications.notify_users(
            db_session, [member.id, colleague.id], NotificationType.CHAT_MESSAGE, "Chat", "Nova", reference
        )
        await services.notifications.clear_by_reference(db_session, member.id, reference)
        assert await services.notifications.unread_count(db_session, colleague.id) == 1

    @pytest.mark.asyncio
    async def test_organization_fan_out(
        self, db_session, services, organization, other_organization, member, colleague
    ):
        outsider = ProfileFactory.create_subscriber(organization_id=other_organization.id)
        db_session.add(outsider)
        await db_session.commit()

        rows = await services.notifications.notify_organization(
            db_session,
            organization.id,
            NotificationType.OPPORTUNITY_STATUS,
            "Status",
            "GO",
            exclude_user_id=member.id,
        )

        assert [row.user_id for row in rows] == [colleague.id]
        assert await services.notifications.unread_count(db_session, outsider.id) == 0

    @pytest.mark.asyncio
    async def test_admin_fan_out(self, db_session, services, admin, member):
        rows = await services.notifications.notify_admins(
            db_session, NotificationType.NEW_TICKET, "Novo chamado", "Chamado aberto"
        )
        assert [row.user_id for row in rows] == [admin.id]

    @pytest.mark.asyncio
    async def test_mark_read(self, db_session, services, member):
        notifications = services.notifications
        first = await notifications.notify(db_session, member.id, NotificationType.SUBSCRIPTION, "A", "a")
        await notifications.notify(db_session, member.id, NotificationType.SUBSCRIPTION, "B", "b")
        await notifications.notify(db_session, member.id, NotificationType.SUBSCRIPTION, "C", "c")

        assert await notifications.mark_read(db_session, member.id, [first.id]) == 1
        assert await notifications.unread_count(db_session, member.id) == 2
        assert await notifications.mark_read(db_session, member.id) == 2
        assert await notifications.unread_count(db_session, member.id) == 0

    @pytest.mark.asyncio
    async def test_new_notices_are_relayed(self, db_session, services, member):
        subscription = services.bus.subscribe(NOTIFICATIONS, {"user_id": member.id})
        await services.notifications.notify(
            db_session, member.id, NotificationType.SUBSCRIPTION, "Assinatura", "Confirmada"
        )
        event = await subscription.get(timeout=1)
        assert event.record["title"] == "Assinatura"


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_dispatch_runs_in_its_own_session(self, db_session, services, member):
        delivered = await services.dispatcher.notify(
            member.id, NotificationType.TICKET_MESSAGE, "Resposta", "Texto"
        )
        assert delivered is True
        assert await services.notifications.unread_count(db_session, member.id) == 1

    @pytest.mark.asyncio
    async def test_dispatch_failure_is_swallowed(self, services, member):
        def unavailable():
            raise ConnectionError("database unavailable")

        dispatcher = NotificationDispatcher(unavailable, services.notifications)
        delivered = await dispatcher.notify_admins(NotificationType.NEW_TICKET, "Novo", "Chamado")
        assert delivered is False
