"""API module exports."""

from src.api.admin import router as admin_router
from src.api.bookings import router as bookings_router
from src.api.clients import router as clients_router
from src.api.deps import get_db, get_redis
from src.api.health import router as health_router
from src.api.payments import router as payments_router

__all__ = [
    "admin_router",
    "bookings_router",
    "clients_router",
    "get_db",
    "get_redis",
    "health_router",
    "payments_router",
]
