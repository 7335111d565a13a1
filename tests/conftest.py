"""Pytest configuration and shared fixtures for tests."""

import os
from collections.abc import AsyncGenerator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.api.deps import get_db
from src.core.config import settings
from src.main import app
from src.models import Base
from src.notifications.service import NotificationKind

ADMIN_KEY = "test-admin-key"


class FakeMailer:
    enabled = False


class RecordingNotifier:
    """Stands in for Notifier; records dispatches instead of sending."""

    def __init__(self) -> None:
        self.mailer = FakeMailer()
        self.sent: list[tuple[NotificationKind, str | None, dict[str, Any]]] = []

    def dispatch(
        self,
        kind: NotificationKind,
        recipient: str | None,
        payload: dict[str, Any],
    ) -> None:
        self.sent.append((kind, recipient, payload))

    def kinds(self) -> list[NotificationKind]:
        return [kind for kind, _, _ in self.sent]

    async def aclose(self) -> None:
        return None


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """Create a mock database session.

    Returns:
        AsyncMock configured to simulate database session.
    """
    session = AsyncMock()
    session.execute.return_value = MagicMock()
    return session


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis connection that succeeds."""
    redis_mock = AsyncMock()
    redis_mock.ping.return_value = True
    return redis_mock


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create a sqlite-backed session factory with all tables."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def admin_headers(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Configure an admin key and return the matching request headers."""
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)
    return {"X-Admin-Api-Key": ADMIN_KEY}


@pytest_asyncio.fixture
async def api_client(
    session_factory: async_sessionmaker[AsyncSession],
    notifier: RecordingNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """Create API client with DB dependency override and a recording notifier."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.state.async_session = session_factory
    app.state.notifier = notifier
    app.state.payment_gateway = None
    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
    app.dependency_overrides.clear()
