"""SQLAlchemy models for the bookings application."""

from src.models.base import Base
from src.models.client import Client
from src.models.payment import Payment, PaymentMethod, PaymentStatus
from src.models.project import Project, ProjectStatus, ProjectType

__all__ = [
    "Base",
    "Client",
    "Project",
    "ProjectStatus",
    "ProjectType",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
]
