"""FastAPI dependency injection for sessions, collaborators and admin auth."""

from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.bookings.service import BookingLifecycleManager
from src.core.config import settings
from src.notifications.service import Notifier
from src.payments.gateway import StripeGateway

if TYPE_CHECKING:
    import redis.asyncio as redis


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session from the app's session factory.

    Args:
        request: FastAPI request containing app state.

    Yields:
        AsyncSession for database operations with automatic commit/rollback.
    """
    async with request.app.state.async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_redis(request: Request) -> "redis.Redis":
    """Get Redis connection pool from app state."""
    return request.app.state.redis


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_payment_gateway(request: Request) -> StripeGateway:
    """Return the configured Stripe gateway.

    Raises:
        HTTPException: 503 if no Stripe key is configured.
    """
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment processing is not configured",
        )
    return gateway


def get_booking_manager(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> BookingLifecycleManager:
    """Build a lifecycle manager bound to this request's session."""
    return BookingLifecycleManager(
        session=db,
        notifier=notifier,
        monthly_capacity=settings.monthly_capacity,
        admin_email=settings.admin_recipient,
        gateway=getattr(request.app.state, "payment_gateway", None),
    )


async def verify_admin_api_key(
    x_admin_api_key: str | None = Header(default=None, alias="X-Admin-Api-Key"),
) -> None:
    """Verify the API key for admin endpoints.

    Raises:
        HTTPException: 503 if no key is configured, 401 if the key is wrong.
    """
    if not settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key is not configured",
        )
    if x_admin_api_key != settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin API key",
        )
