"""Project (booking) SQLAlchemy model."""

import enum
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from src.models.client import Client
    from src.models.payment import Payment


class ProjectStatus(enum.Enum):
    """Enumeration of booking lifecycle states."""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProjectType(enum.Enum):
    """Kinds of engagement a client can book."""

    LANDING = "landing"
    BUSINESS = "business"
    ECOMMERCE = "ecommerce"
    WEBAPP = "webapp"
    CUSTOM = "custom"
    SERVICE_ONLY = "service-only"

    @property
    def uses_capacity(self) -> bool:
        """Whether bookings of this type occupy a monthly slot."""
        return self is not ProjectType.SERVICE_ONLY


class Project(Base, TimestampMixin):
    """A client's booking for a web-development engagement."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_id: Mapped[int] = mapped_column(
        ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True
    )
    project_type: Mapped[ProjectType] = mapped_column(
        Enum(ProjectType), default=ProjectType.CUSTOM, nullable=False
    )
    specifications: Mapped[str | None] = mapped_column(Text)
    website_type: Mapped[str | None] = mapped_column(String(100))
    primary_color: Mapped[str | None] = mapped_column(String(7))
    secondary_color: Mapped[str | None] = mapped_column(String(7))
    accent_color: Mapped[str | None] = mapped_column(String(7))
    base_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0"), nullable=False
    )
    total_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("0"), nullable=False
    )
    booking_month: Mapped[str | None] = mapped_column(String(50), index=True)
    status: Mapped[ProjectStatus] = mapped_column(
        Enum(ProjectStatus), default=ProjectStatus.PENDING, nullable=False, index=True
    )

    # Relationships
    client: Mapped["Client"] = relationship(back_populates="projects")
    payments: Mapped[list["Payment"]] = relationship(
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
