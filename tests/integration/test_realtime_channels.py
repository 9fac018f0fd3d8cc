"""
Integration tests for realtime channel resolution.
"""

from uuid import uuid4

import pytest

from licitadesk.api.v1.endpoints.realtime import _resolve_channel, parse_frame
from licitadesk.core.exceptions import AuthorizationError, NotFoundError
from licitadesk.db.enums import RoomType
from licitadesk.services.event_models import (
    CHAT_MESSAGES,
    NOTIFICATIONS,
    OPPORTUNITIES,
    TICKET_MESSAGES,
    TICKETS,
    TYPING,
)
from tests.factories import OpportunityFactory, TicketFactory


class TestResolveChannel:
    @pytest.mark.asyncio
    async def test_notifications_are_per_user(self, db_session, services, member):
        pairs = await _resolve_channel(db_session, services, member, "notifications", None)
        assert pairs == [(NOTIFICATIONS, {"user_id": str(member.id)})]

    @pytest.mark.asyncio
    async def test_room_channel_carries_messages_and_typing(self, db_session, services, member):
        room = await services.rooms.get_or_create_room(db_session, member, RoomType.SUPPORT)

        pairs = await _resolve_channel(db_session, services, member, "room", str(room.id))

        assert pairs == [
            (CHAT_MESSAGES, {"room_id": str(room.id)}),
            (TYPING, {"room_id": str(room.id)}),
        ]

    @pytest.mark.asyncio
    async def test_support_room_of_someone_else(self, db_session, services, member, colleague):
        room = await services.rooms.get_or_create_room(db_session, member, RoomType.SUPPORT)
        with pytest.raises(AuthorizationError):
            await _resolve_channel(db_session, services, colleague, "room", str(room.id))

    @pytest.mark.asyncio
    async def test_opportunity_channel(self, db_session, services, organization, member):
        opportunity = OpportunityFactory.create(organization.id)
        db_session.add(opportunity)
        await db_session.commit()

        pairs = await _resolve_channel(db_session, services, member, "opportunity", str(opportunity.id))
        assert pairs == [(OPPORTUNITIES, {"id": str(opportunity.id)})]

    @pytest.mark.asyncio
    async def test_ticket_channel(self, db_session, services, member, colleague):
        ticket = TicketFactory.create(member.id)
        db_session.add(ticket)
        await db_session.commit()

        pairs = await _resolve_channel(db_session, services, member, "ticket", str(ticket.id))
        assert pairs == [
            (TICKETS, {"id": str(ticket.id)}),
            (TICKET_MESSAGES, {"ticket_id": str(ticket.id)}),
        ]
        with pytest.raises(AuthorizationError):
            await _resolve_channel(db_session, services, colleague, "ticket", str(ticket.id))

    @pytest.mark.asyncio
    async def test_missing_target(self, db_session, services, member):
        with pytest.raises(NotFoundError):
            await _resolve_channel(db_session, services, member, "room", str(uuid4()))

    @pytest.mark.asyncio
    async def test_malformed_frames(self, db_session, services, member):
        with pytest.raises(ValueError):
            await _resolve_channel(db_session, services, member, "room", None)
        with pytest.raises(ValueError):
            await _resolve_channel(db_session, services, member, "presence", str(uuid4()))

    @pytest.mark.asyncio
    async def test_pending_account_only_follows_notifications(
        self, db_session, services, organization, member, pending_profile, load_actor
    ):
        lobby = await services.rooms.get_or_create_room(db_session, member, RoomType.LOBBY)
        opportunity = OpportunityFactory.create(organization.id)
        db_session.add(opportunity)
        await db_session.commit()
        pending = await load_actor(pending_profile)

        with pytest.raises(AuthorizationError) as exc_info:
            await _resolve_channel(db_session, services, pending, "room", str(lobby.id))
        assert exc_info.value.upsell == "contact_staff"
        with pytest.raises(AuthorizationError):
            await _resolve_channel(db_session, services, pending, "opportunity", str(opportunity.id))

        pairs = await _resolve_channel(db_session, services, pending, "notifications", None)
        assert pairs == [(NOTIFICATIONS, {"user_id": str(pending.id)})]


class TestParseFrame:
    def test_object_frame(self):
        assert parse_frame('{"action": "subscribe", "channel": "notifications"}') == {
            "action": "subscribe",
            "channel": "notifications",
        }

    def test_not_json(self):
        assert parse_frame("subscribe me") is None

    def test_not_an_object(self):
        assert parse_frame('["subscribe"]') is None
        assert parse_frame("42") is None

    def test_binary_frame(self):
        assert parse_frame(None) is None
