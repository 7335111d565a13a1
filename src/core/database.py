"""Async database engine factory and session management."""

from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.core.config import settings

# Import all models to register them with Base.metadata
from src.models import Base, Client, Payment, Project  # noqa: F401


def create_engine(
    database_url: str | None = None,
    **engine_options: Any,
) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Pool sizing only applies to server databases; SQLite keeps the
    dialect defaults.

    Args:
        database_url: Connection URL. Defaults to settings.database_url.
        **engine_options: Additional options passed to create_async_engine.

    Returns:
        Configured AsyncEngine instance.
    """
    url = database_url or settings.database_url

    default_options: dict[str, Any] = {
        "pool_pre_ping": True,
        "echo": settings.debug,
    }
    if make_url(url).get_backend_name() != "sqlite":
        default_options.update({"pool_size": 5, "max_overflow": 5})
    default_options.update(engine_options)

    return create_async_engine(url, **default_options)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory.

    Args:
        engine: AsyncEngine instance to bind sessions to.

    Returns:
        Configured async_sessionmaker instance.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
