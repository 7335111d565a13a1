"""Payment SQLAlchemy model."""

import enum
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from src.models.project import Project


class PaymentMethod(enum.Enum):
    """Payment methods offered at checkout."""

    STRIPE = "stripe"
    PAYPAL = "paypal"
    AFTERPAY = "afterpay"
    CREDIT = "credit"


class PaymentStatus(enum.Enum):
    """Recorded state of a single payment attempt."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base, TimestampMixin):
    """A payment attempt for a project, keyed by the gateway's reference."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod), nullable=False
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True
    )
    gateway_reference: Mapped[str] = mapped_column(
        String(255), nullable=False, unique=True
    )

    # Relationships
    project: Mapped["Project"] = relationship(back_populates="payments")
