"""Health check endpoint for infrastructure verification."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps import get_db, get_redis
from src.core.logging import get_logger
from src.core.redis import check_redis_health

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model.

    ``email`` and ``payments`` report configuration only; they never make a
    network call.
    """

    status: str
    db: str
    redis: str
    email: str
    payments: str


@router.get("/health", response_model=HealthResponse)
async def health_check(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> HealthResponse:
    """Check database and Redis connectivity.

    Returns:
        HealthResponse; ``status`` is ``degraded`` if either store is down.
    """
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.exception("database_health_check_failed", error=str(e))
        db_status = "disconnected"

    redis_pool = await get_redis(request)
    redis_healthy = await check_redis_health(redis_pool)
    redis_status = "connected" if redis_healthy else "disconnected"

    notifier = getattr(request.app.state, "notifier", None)
    email_status = "enabled" if notifier and notifier.mailer.enabled else "disabled"
    gateway = getattr(request.app.state, "payment_gateway", None)
    payments_status = "enabled" if gateway is not None else "disabled"

    return HealthResponse(
        status="ok"
        if db_status == "connected" and redis_status == "connected"
        else "degraded",
        db=db_status,
        redis=redis_status,
        email=email_status,
        payments=payments_status,
    )
