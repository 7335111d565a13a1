"""Admin dashboard summary."""

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.bookings import BookingResponse, to_booking_response
from src.api.deps import get_db, verify_admin_api_key
from src.bookings.repository import BookingRepository
from src.core.config import settings
from src.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["admin"],
    dependencies=[Depends(verify_admin_api_key)],
)

RECENT_LIMIT = 10


class StatsResponse(BaseModel):
    total_clients: int
    total_projects: int
    projects_by_status: dict[str, int]
    revenue: Decimal
    monthly_capacity: int
    bookings_by_month: dict[str, int]
    recent_projects: list[BookingResponse]


@router.get("/stats", response_model=StatsResponse)
async def get_stats(db: AsyncSession = Depends(get_db)) -> StatsResponse:
    """Totals, per-month slot usage and the latest bookings."""
    repository = BookingRepository(db)
    try:
        totals = await repository.stats()
        by_month = await repository.bookings_by_month()
        recent, _ = await repository.list_projects(limit=RECENT_LIMIT)
    except SQLAlchemyError as exc:
        logger.exception("admin_stats_failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load stats",
        ) from exc

    return StatsResponse(
        **totals,
        monthly_capacity=settings.monthly_capacity,
        bookings_by_month=by_month,
        recent_projects=[to_booking_response(project) for project in recent],
    )
