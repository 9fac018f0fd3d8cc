"""
Reads during a store outage must fail loudly, never pass for an empty result.
"""

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from licitadesk.core.database import build_session_factory


@pytest_asyncio.fixture
async def unreachable_factory(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'store.db'}",
        poolclass=NullPool,
    )
    yield build_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def unreachable_session(unreachable_factory):
    async with unreachable_factory() as session:
        yield session


class TestReadsDuringOutage:
    @pytest.mark.asyncio
    async def test_ticket_listing(self, unreachable_session, services, member):
        with pytest.raises(OperationalError):
            await services.tickets.list_tickets(unreachable_session, member)

    @pytest.mark.asyncio
    async def test_opportunity_listing(self, unreachable_session, services, member):
        with pytest.raises(OperationalError):
            await services.opportunities.list_for_member(unreachable_session, member)

    @pytest.mark.asyncio
    async def test_notification_reads(self, unreachable_session, services, member):
        with pytest.raises(OperationalError):
            await services.notifications.list_for_user(unreachable_session, member.id)
        with pytest.raises(OperationalError):
            await services.notifications.unread_count(unreachable_session, member.id)

    @pytest.mark.asyncio
    async def test_chat_unread_counts(self, unreachable_session, services, member):
        with pytest.raises(OperationalError):
            await services.messages.unread_counts(unreachable_session, member)


class TestOutageOverHttp:
    @pytest.mark.asyncio
    async def test_outage_is_a_retryable_notice(self, unreachable_factory, services, member):
        from licitadesk.app import create_app
        from licitadesk.core.dependencies import get_current_actor, get_db

        app = create_app(use_lifespan=False)
        app.state.services = services

        async def override_get_db():
            async with unreachable_factory() as session:
                yield session

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_actor] = lambda: member

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            count = await client.get("/api/v1/notifications/count")
            tickets = await client.get("/api/v1/tickets")

        for response in (count, tickets):
            assert response.status_code == 503
            assert response.json()["code"] == "transient_error"
            assert response.json()["retryable"] is True
