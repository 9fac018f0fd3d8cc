"""
Integration tests for chat rooms and messages.

Tests cover:
- Room resolution, including concurrent first access
- Room access rules per room kind
- Commit-order sequence numbers and history with author badges
- Lobby soft delete versus hard delete elsewhere
- Attachments, including a failed upload
- Read cursors, unread counts and typing presence
"""

import asyncio

import pytest
from sqlalchemy import func, select

from licitadesk.core.exceptions import AuthorizationError, UploadError, ValidationError
from licitadesk.db.enums import NotificationType, RoomType
from licitadesk.db.models import ChatMessage, ChatRoom
from licitadesk.services.chat_message_service import Attachment
from licitadesk.services.event_models import CHAT_MESSAGES
from tests.factories import OpportunityFactory, ProfileFactory


async def support_room(db_session, services, actor) -> ChatRoom:
    return await services.rooms.get_or_create_room(db_session, actor, RoomType.SUPPORT)


class TestRooms:
    @pytest.mark.asyncio
    async def test_concurrent_first_access_creates_one_room(self, session_factory, services, member):
        async with session_factory() as first, session_factory() as second:
            rooms = await asyncio.gather(
                services.rooms.get_or_create_room(first, member, RoomType.SUPPORT),
                services.rooms.get_or_create_room(second, member, RoomType.SUPPORT),
            )

        assert rooms[0].id == rooms[1].id
        async with session_factory() as check:
            count = (
                await check.execute(select(func.count()).select_from(ChatRoom).where(ChatRoom.user_id == member.id))
            ).scalar_one()
        assert count == 1

    @pytest.mark.asyncio
    async def test_support_room_is_reused(self, db_session, services, member):
        first = await support_room(db_session, services, member)
        second = await support_room(db_session, services, member)
        assert first.id == second.id
        assert first.user_id == member.id

    @pytest.mark.asyncio
    async def test_staff_open_member_support_room(self, db_session, services, admin, member):
        own = await support_room(db_session, services, member)
        opened = await services.rooms.get_or_create_room(
            db_session, admin, RoomType.SUPPORT, member_id=member.id
        )
        assert opened.id == own.id

    @pytest.mark.asyncio
    async def test_support_room_is_private(self, db_session, services, member, colleague):
        room = await support_room(db_session, services, member)
        with pytest.raises(AuthorizationError):
            await services.rooms.get_room(db_session, colleague, room.id)

    @pytest.mark.asyncio
    async def test_opportunity_room_follows_organization(
        self, db_session, services, organization, other_organization, member, colleague, load_actor
    ):
        opportunity = OpportunityFactory.create(organization_id=organization.id)
        db_session.add(opportunity)
        await db_session.commit()

        room = await services.rooms.get_or_create_room(
            db_session, member, RoomType.OPPORTUNITY, opportunity_id=opportunity.id
        )
        assert room.opportunity_id == opportunity.id
        assert (await services.rooms.get_room(db_session, colleague, room.id)).id == room.id

        outsider = await self._outsider(db_session, other_organization, load_actor)
        with pytest.raises(AuthorizationError):
            await services.rooms.get_room(db_session, outsider, room.id)

    @staticmethod
    async def _outsider(db_session, organization, load_actor):
        profile = ProfileFactory.create_subscriber(organization_id=organization.id)
        db_session.add(profile)
        await db_session.commit()
        return await load_actor(profile.id)

    @pytest.mark.asyncio
    async def test_closed_room_is_replaced(self, db_session, services, admin, member):
        room = await support_room(db_session, services, member)
        await services.rooms.close_room(db_session, admin, room.id)

        fresh = await support_room(db_session, services, member)
        assert fresh.id != room.id
        with pytest.raises(ValidationError):
            await services.messages.send_message(db_session, member, room.id, "ainda aí?")


class TestMessages:
    @pytest.mark.asyncio
    async def test_sequence_and_history(self, db_session, services, admin, member):
        room = await support_room(db_session, services, member)
        subscription = services.bus.subscribe(CHAT_MESSAGES, {"room_id": room.id})

        await services.messages.send_message(db_session, member, room.id, "Bom dia")
        await services.messages.send_message(db_session, admin, room.id, "Bom dia, como ajudo?")
        await services.messages.send_message(db_session, member, room.id, "Sobre o pregão")

        received = [(await subscription.get(timeout=1)).record["sequence_number"] for _ in range(3)]
        assert received == [1, 2, 3]

        history = await services.messages.list_history(db_session, member, room.id)
        assert [entry.message.sequence_number for entry in history] == [1, 2, 3]
        assert [entry.author_badge for entry in history] == ["Assinante", "Suporte", "Assinante"]
        assert history[1].author_name == "Equipe Suporte"

        page = await services.messages.list_history(db_session, member, room.id, limit=1, before_sequence=3)
        assert [entry.message.sequence_number for entry in page] == [2]

    @pytest.mark.asyncio
    async def test_concurrent_sends_get_distinct_sequences(self, session_factory, services, member):
        async with session_factory() as db:
            room = await services.rooms.get_or_create_room(db, member, RoomType.SUPPORT)

        async def send(text):
            async with session_factory() as db:
                return await services.messages.send_message(db, member, room.id, text)

        messages = await asyncio.gather(*(send(f"mensagem {n}") for n in range(5)))
        assert sorted(m.sequence_number for m in messages) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_message_limits(self, db_session, services, member):
        room = await support_room(db_session, services, member)
        with pytest.raises(ValidationError):
            await services.messages.send_message(db_session, member, room.id, "   ")
        with pytest.raises(ValidationError):
            await services.messages.send_message(db_session, member, room.id, "x" * 2001)

    @pytest.mark.asyncio
    async def test_support_message_notifies_staff(self, db_session, services, admin, member):
        room = await support_room(db_session, services, member)
        await services.messages.send_message(db_session, member, room.id, "Preciso de ajuda")

        notices = await services.notifications.list_for_user(db_session, admin.id)
        assert [(n.type, n.title) for n in notices] == [
            (NotificationType.CHAT_MESSAGE.value, "Suporte: Ana Assinante")
        ]

    @pytest.mark.asyncio
    async def test_lobby_messages_do_not_notify(self, db_session, services, admin, member):
        lobby = await services.rooms.get_or_create_room(db_session, member, RoomType.LOBBY)
        await services.messages.send_message(db_session, member, lobby.id, "Olá a todos")
        assert await services.notifications.unread_count(db_session, admin.id) == 0


class TestDeletion:
    @pytest.mark.asyncio
    async def test_lobby_soft_delete_keeps_original_for_staff(self, db_session, services, admin, member):
        lobby = await services.rooms.get_or_create_room(db_session, member, RoomType.LOBBY)
        message = await services.messages.send_message(db_session, member, lobby.id, "Texto indevido")

        deleted = await services.messages.delete_message(db_session, member, message.id)

        assert deleted.is_deleted is True
        assert deleted.message == "[mensagem removida]"
        assert deleted.sequence_number == 1
        notices = await services.notifications.list_for_user(db_session, admin.id)
        assert notices[0].type == NotificationType.MESSAGE_DELETED.value
        assert "Texto indevido" in notices[0].message

    @pytest.mark.asyncio
    async def test_lobby_delete_is_idempotent(self, db_session, services, admin, member):
        lobby = await services.rooms.get_or_create_room(db_session, member, RoomType.LOBBY)
        message = await services.messages.send_message(db_session, member, lobby.id, "Oops")

        await services.messages.delete_message(db_session, member, message.id)
        again = await services.messages.delete_message(db_session, member, message.id)

        assert again.message == "[mensagem removida]"
        assert await services.notifications.unread_count(db_session, admin.id) == 1

    @pytest.mark.asyncio
    async def test_cannot_delete_someone_elses_lobby_message(self, db_session, services, member, colleague):
        lobby = await services.rooms.get_or_create_room(db_session, member, RoomType.LOBBY)
        message = await services.messages.send_message(db_session, member, lobby.id, "Meu texto")
        with pytest.raises(AuthorizationError):
            await services.messages.delete_message(db_session, colleague, message.id)

    @pytest.mark.asyncio
    async def test_support_messages_are_removed(self, db_session, services, admin, member):
        room = await support_room(db_session, services, member)
        message = await services.messages.send_message(db_session, member, room.id, "Apagar")
        message_id = message.id

        assert await services.messages.delete_message(db_session, admin, message_id) is None
        assert await db_session.get(ChatMessage, message_id) is None

    @pytest.mark.asyncio
    async def test_members_cannot_remove_support_messages(self, db_session, services, member):
        room = await support_room(db_session, services, member)
        message = await services.messages.send_message(db_session, member, room.id, "Fica")
        with pytest.raises(AuthorizationError):
            await services.messages.delete_message(db_session, member, message.id)


class TestAttachments:
    @pytest.mark.asyncio
    async def test_attachment_reference_is_appended(self, db_session, services, storage, member):
        room = await support_room(db_session, services, member)
        attachment = Attachment("Edital.PDF", b"%PDF-1.4", "application/pdf")

        message = await services.messages.send_message(db_session, member, room.id, "Segue o edital", attachment)

        (key,) = storage.objects
        assert key.startswith(f"chat/{room.id}/")
        assert key.endswith(".pdf")
        assert message.message == f"Segue o edital\n\n📎 Anexo: Edital.PDF\nhttps://files.test/{key}?expires=31536000"

    @pytest.mark.asyncio
    async def test_attachment_without_text(self, db_session, services, member):
        room = await support_room(db_session, services, member)
        message = await services.messages.send_message(
            db_session, member, room.id, "", Attachment("foto.png", b"png", "image/png")
        )
        assert message.message.startswith("📎 Anexo: foto.png\n")

    @pytest.mark.asyncio
    async def test_failed_upload_sends_nothing(self, db_session, services, storage, member):
        room = await support_room(db_session, services, member)
        storage.fail_uploads = True

        with pytest.raises(UploadError):
            await services.messages.send_message(
                db_session, member, room.id, "Segue", Attachment("edital.pdf", b"%PDF")
            )
        assert await services.messages.list_history(db_session, member, room.id) == []

    @pytest.mark.asyncio
    async def test_no_attachments_in_lobby(self, db_session, services, storage, member):
        lobby = await services.rooms.get_or_create_room(db_session, member, RoomType.LOBBY)
        with pytest.raises(ValidationError):
            await services.messages.send_message(
                db_session, member, lobby.id, "", Attachment("edital.pdf", b"%PDF")
            )
        assert storage.objects == {}


class TestReadStateAndTyping:
    @pytest.mark.asyncio
    async def test_read_cursor_and_unread_counts(self, db_session, services, admin, member):
        room = await support_room(db_session, services, member)
        await services.messages.send_message(db_session, member, room.id, "Oi")
        await services.messages.send_message(db_session, admin, room.id, "Olá")
        await services.messages.send_message(db_session, admin, room.id, "Pode enviar o edital?")

        assert await services.messages.unread_counts(db_session, member) == {room.id: 2}
        assert await services.notifications.unread_count(db_session, member.id) == 2

        cursor = await services.messages.mark_room_read(db_session, member, room.id)

        assert cursor.last_read_sequence == 3
        assert await services.messages.unread_counts(db_session, member, [room.id]) == {room.id: 0}
        assert await services.notifications.unread_count(db_session, member.id) == 0

    @pytest.mark.asyncio
    async def test_deleted_lobby_messages_are_not_unread(self, db_session, services, member, colleague):
        lobby = await services.rooms.get_or_create_room(db_session, member, RoomType.LOBBY)
        message = await services.messages.send_message(db_session, member, lobby.id, "Oi")
        await services.messages.send_message(db_session, member, lobby.id, "Tudo bem?")
        await services.messages.delete_message(db_session, member, message.id)

        assert await services.messages.unread_counts(db_session, colleague, [lobby.id]) == {lobby.id: 1}

    @pytest.mark.asyncio
    async def test_typing_presence(self, db_session, services, admin, member):
        room = await support_room(db_session, services, member)

        await services.messages.start_typing(db_session, member, room.id)

        assert await services.messages.typing_users(db_session, admin, room.id) == [
            (str(member.id), "Ana Assinante")
        ]
        assert await services.messages.typing_users(db_session, member, room.id) == []

        await services.messages.send_message(db_session, member, room.id, "Pronto")
        assert await services.messages.typing_users(db_session, admin, room.id) == []

    @pytest.mark.asyncio
    async def test_typing_lapses(self, db_session, services, admin, member):
        room = await support_room(db_session, services, member)
        await services.messages.start_typing(db_session, member, room.id)
        await asyncio.sleep(0.3)
        assert await services.messages.typing_users(db_session, admin, room.id) == []


class TestMentions:
    @pytest.mark.asyncio
    async def test_suggestions_are_scoped_to_organization(
        self, db_session, services, organization, other_organization, member
    ):
        db_session.add_all(
            [
                OpportunityFactory.create(organization.id, title="Pregão Merenda Escolar"),
                OpportunityFactory.create(organization.id, title="Pregão Merenda Rascunho", is_published=False),
                OpportunityFactory.create(other_organization.id, title="Pregão Merenda Vizinha"),
            ]
        )
        await db_session.commit()

        suggestions = await services.messages.suggest_mentions(db_session, member, "merenda")
        assert [o.title for o in suggestions] == ["Pregão Merenda Escolar"]
