"""
Shared fixtures: in-memory database, fake OAuth connectors, ASGI client.
"""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from connectors.registry import ConnectorRegistry
from database.models import Base
from database.session import get_db_session
from tests.helpers import FakeConnector, github_profile, google_token, login, slack_token


# ── Database ───────────────────────────────────────────────────────────


@pytest.fixture
async def db_engine():
    """In-memory SQLite shared by every connection of the test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ── Connectors ─────────────────────────────────────────────────────────


@pytest.fixture
def connectors():
    """Fake connectors for all four providers, registered in a fresh registry."""
    ConnectorRegistry.reset()
    registry = ConnectorRegistry()
    fakes = {
        "github": FakeConnector("github", "GitHub", github_profile(), default_expires_in=None),
        "gmail": FakeConnector("gmail", "Gmail", google_token()),
        "google-calendar": FakeConnector("google-calendar", "Google Calendar", google_token()),
        "slack": FakeConnector("slack", "Slack", slack_token(), default_expires_in=86400),
    }
    for fake in fakes.values():
        registry.register(fake)
    yield fakes
    ConnectorRegistry.reset()


# ── App ────────────────────────────────────────────────────────────────


@pytest.fixture
async def app(session_factory, connectors):
    from main import create_app

    async def _test_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    test_app = create_app()
    test_app.dependency_overrides[get_db_session] = _test_db_session
    return test_app


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
async def logged_in(client):
    await login(client)
    return client
