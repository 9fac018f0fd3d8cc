"""
Pytest configuration and fixtures for testing.

Provides:
- A fresh SQLite database (aiosqlite) per test, built from the SQLModel metadata
- A service registry wired to that database with in-memory storage
- An httpx client for the FastAPI app with the same services installed
- Profiles/actors for the usual roles

Usage:
    pytest tests/ -v
"""

from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable, Dict, List, Optional, Tuple
from uuid import UUID

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import NullPool

from licitadesk.core.database import build_session_factory, init_db
from licitadesk.core.security import create_access_token
from licitadesk.db.models import Organization, Profile, utcnow
from licitadesk.services.access_service import Actor
from licitadesk.services.registry import ServiceRegistry
from tests.factories import OrganizationFactory, ProfileFactory, UserRoleFactory


# ============================================================================
# Storage double
# ============================================================================


class FakeStorage:
    """In-memory stand-in for the MinIO storage service."""

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.signed: List[Tuple[str, int]] = []
        self.fail_uploads = False
        self.healthy = True

    async def ensure_bucket_exists(self) -> None:
        return None

    async def upload_file(self, object_key: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        if self.fail_uploads:
            raise OSError("storage unreachable")
        self.objects[object_key] = (content, content_type)
        return object_key

    async def generate_presigned_url(self, object_key: str, expiry_seconds: int) -> str:
        self.signed.append((object_key, expiry_seconds))
        return f"https://files.test/{object_key}?expires={expiry_seconds}"

    async def health_check(self) -> bool:
        return self.healthy


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """File-backed SQLite so isolated sessions see each other's commits."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'licitadesk_test.db'}",
        poolclass=NullPool,
        echo=False,
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest_asyncio.fixture
async def services(session_factory, storage) -> AsyncGenerator[ServiceRegistry, None]:
    registry = ServiceRegistry.build(session_factory, storage=storage, typing_window_seconds=0.2)
    yield registry
    await registry.close()


# ============================================================================
# People
# ============================================================================


@pytest_asyncio.fixture
async def organization(db_session: AsyncSession) -> Organization:
    org = OrganizationFactory.create(name="Construtora Horizonte")
    db_session.add(org)
    await db_session.commit()
    return org


@pytest_asyncio.fixture
async def other_organization(db_session: AsyncSession) -> Organization:
    org = OrganizationFactory.create(name="Engenharia Litoral")
    db_session.add(org)
    await db_session.commit()
    return org


@pytest_asyncio.fixture
async def admin_profile(db_session: AsyncSession) -> Profile:
    profile = ProfileFactory.create(full_name="Equipe Suporte")
    db_session.add(profile)
    await db_session.flush()
    db_session.add(UserRoleFactory.create_admin(profile.id))
    await db_session.commit()
    return profile


@pytest_asyncio.fixture
async def subscriber_profile(db_session: AsyncSession, organization: Organization) -> Profile:
    profile = ProfileFactory.create_subscriber(full_name="Ana Assinante", organization_id=organization.id)
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest_asyncio.fixture
async def colleague_profile(db_session: AsyncSession, organization: Organization) -> Profile:
    profile = ProfileFactory.create_subscriber(full_name="Bruno Colega", organization_id=organization.id)
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest_asyncio.fixture
async def pending_profile(db_session: AsyncSession, organization: Organization) -> Profile:
    profile = ProfileFactory.create(full_name="Carla Pendente", organization_id=organization.id)
    db_session.add(profile)
    await db_session.commit()
    return profile


@pytest.fixture
def load_actor(db_session: AsyncSession, services: ServiceRegistry) -> Callable:
    """Resolve a profile (or id) to an Actor the way a request would."""

    async def _load(profile_or_id, now: Optional[datetime] = None) -> Actor:
        user_id = profile_or_id if isinstance(profile_or_id, UUID) else profile_or_id.id
        return await services.access.load_actor(db_session, user_id, now)

    return _load


@pytest_asyncio.fixture
async def admin(admin_profile, load_actor) -> Actor:
    return await load_actor(admin_profile)


@pytest_asyncio.fixture
async def member(subscriber_profile, load_actor) -> Actor:
    return await load_actor(subscriber_profile)


@pytest_asyncio.fixture
async def colleague(colleague_profile, load_actor) -> Actor:
    return await load_actor(colleague_profile)


# ============================================================================
# HTTP client
# ============================================================================


@pytest_asyncio.fixture
async def client(session_factory, services) -> AsyncGenerator[httpx.AsyncClient, None]:
    from licitadesk.api.v1.endpoints.webhooks import limiter
    from licitadesk.app import create_app
    from licitadesk.core.dependencies import get_db

    app = create_app(use_lifespan=False)
    app.state.services = services
    app.state.session_factory = session_factory

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


def auth_headers(profile_or_id, expires_delta: Optional[timedelta] = None) -> Dict[str, str]:
    user_id = profile_or_id if isinstance(profile_or_id, UUID) else profile_or_id.id
    return {"Authorization": f"Bearer {create_access_token(user_id, expires_delta)}"}


@pytest.fixture
def now() -> datetime:
    return utcnow()
