"""Persistence operations used by the booking lifecycle."""

import zlib
from collections.abc import Collection, Sequence
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.bookings.state_machine import create_state_machine
from src.core.logging import get_logger
from src.models.client import Client
from src.models.payment import Payment, PaymentMethod, PaymentStatus
from src.models.project import Project, ProjectStatus, ProjectType

logger = get_logger(__name__)


def month_lock_key(month: str) -> int:
    """Stable 32-bit advisory lock key for a booking month."""
    return zlib.crc32(f"booking_month:{month}".encode("utf-8"))


class BookingRepository:
    """Clients, projects and payments backed by one AsyncSession.

    Methods flush but never commit; the caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name

    async def flush(self) -> None:
        await self.session.flush()

    # Clients

    async def find_client_by_email(self, email: str) -> Client | None:
        result = await self.session.execute(
            select(Client).where(Client.email == email).limit(1)
        )
        return result.scalars().first()

    async def create_client(
        self, name: str, email: str, phone: str | None = None
    ) -> Client:
        client = Client(name=name, email=email, phone=phone)
        self.session.add(client)
        await self.session.flush()
        return client

    async def find_or_create_client(
        self, name: str, email: str, phone: str | None = None
    ) -> tuple[Client, bool]:
        """Return the client for ``email``, creating it if absent.

        An existing client keeps its stored name. A concurrent insert of
        the same email loses on the unique constraint inside a SAVEPOINT
        and falls back to the winner's row.

        Returns:
            Tuple of (client, created).
        """
        client = await self.find_client_by_email(email)
        if client is not None:
            return client, False

        try:
            async with self.session.begin_nested():
                client = await self.create_client(name, email, phone)
        except IntegrityError:
            client = await self.find_client_by_email(email)
            if client is None:
                raise
            logger.info("client_insert_race_resolved", client_id=client.id)
            return client, False
        return client, True

    # Projects

    async def create_project(self, **fields: object) -> Project:
        project = Project(status=ProjectStatus.PENDING, **fields)
        self.session.add(project)
        await self.session.flush()
        return project

    async def get_project(self, project_id: int, for_update: bool = False) -> Project | None:
        """Load a project with its client and payments."""
        stmt = (
            select(Project)
            .where(Project.id == project_id)
            .options(selectinload(Project.client), selectinload(Project.payments))
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def update_project_status(self, project: Project, event: str) -> Project:
        """Apply status transition ``event`` to a loaded project and flush.

        The transition is validated by the project state machine, so an
        event that is not allowed from the current status raises
        ``TransitionNotAllowed`` and nothing is written.
        """
        create_state_machine(project).send(event)
        await self.session.flush()
        return project

    async def lock_month(self, month: str) -> None:
        """Serialize capacity check-then-insert for ``month``.

        Takes a transaction-scoped PostgreSQL advisory lock, released on
        commit or rollback. Other dialects have no equivalent and rely on
        their own write serialization.
        """
        if self.dialect_name != "postgresql":
            return
        await self.session.execute(select(func.pg_advisory_xact_lock(month_lock_key(month))))

    async def count_projects_for_month(
        self,
        month: str,
        exclude_statuses: Collection[ProjectStatus] = (ProjectStatus.CANCELLED,),
    ) -> int:
        """Count slot-holding projects booked into ``month``.

        Service-only projects never hold a slot and are not counted.
        """
        stmt = select(func.count(Project.id)).where(
            Project.booking_month == month,
            Project.project_type != ProjectType.SERVICE_ONLY,
        )
        if exclude_statuses:
            stmt = stmt.where(Project.status.not_in(list(exclude_statuses)))
        result = await self.session.execute(stmt)
        return int(result.scalar() or 0)

    async def list_projects(
        self,
        status: ProjectStatus | None = None,
        month: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[Sequence[Project], int]:
        filters = []
        if status is not None:
            filters.append(Project.status == status)
        if month:
            filters.append(Project.booking_month == month)

        count_stmt = select(func.count(Project.id))
        list_stmt = (
            select(Project)
            .options(selectinload(Project.client))
            .order_by(Project.created_at.desc(), Project.id.desc())
        )
        if filters:
            count_stmt = count_stmt.where(*filters)
            list_stmt = list_stmt.where(*filters)

        total_result = await self.session.execute(count_stmt)
        total = int(total_result.scalar() or 0)

        projects_result = await self.session.execute(list_stmt.limit(limit).offset(offset))
        return projects_result.scalars().all(), total

    async def bookings_by_month(self) -> dict[str, int]:
        """Slot usage per booking month, excluding cancelled projects."""
        result = await self.session.execute(
            select(Project.booking_month, func.count(Project.id))
            .where(
                Project.booking_month.is_not(None),
                Project.project_type != ProjectType.SERVICE_ONLY,
                Project.status != ProjectStatus.CANCELLED,
            )
            .group_by(Project.booking_month)
            .order_by(Project.booking_month)
        )
        return {month: int(count) for month, count in result.all()}

    # Payments

    async def get_payment_by_reference(
        self, gateway_reference: str, for_update: bool = False
    ) -> Payment | None:
        stmt = select(Payment).where(Payment.gateway_reference == gateway_reference)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt.limit(1))
        return result.scalars().first()

    async def list_project_payments(
        self,
        project_id: int,
        statuses: Collection[PaymentStatus] = (),
    ) -> Sequence[Payment]:
        """Payments for one project, oldest first, optionally by status."""
        stmt = select(Payment).where(Payment.project_id == project_id).order_by(Payment.id)
        if statuses:
            stmt = stmt.where(Payment.payment_status.in_(list(statuses)))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def upsert_payment(
        self,
        gateway_reference: str,
        *,
        project_id: int,
        amount: Decimal,
        payment_method: PaymentMethod,
        payment_status: PaymentStatus,
    ) -> tuple[Payment, bool]:
        """Create or update the payment identified by ``gateway_reference``.

        Returns:
            Tuple of (payment, created).
        """
        payment = await self.get_payment_by_reference(gateway_reference, for_update=True)
        if payment is None:
            try:
                async with self.session.begin_nested():
                    payment = Payment(
                        project_id=project_id,
                        amount=amount,
                        payment_method=payment_method,
                        payment_status=payment_status,
                        gateway_reference=gateway_reference,
                    )
                    self.session.add(payment)
                    await self.session.flush()
                return payment, True
            except IntegrityError:
                payment = await self.get_payment_by_reference(gateway_reference)
                if payment is None:
                    raise
                logger.info(
                    "payment_insert_race_resolved",
                    gateway_reference=gateway_reference,
                )

        payment.amount = amount
        payment.payment_status = payment_status
        await self.session.flush()
        return payment, False

    # Reporting

    async def stats(self) -> dict[str, object]:
        """Totals for the admin dashboard."""
        clients = await self.session.execute(select(func.count(Client.id)))
        by_status = await self.session.execute(
            select(Project.status, func.count(Project.id)).group_by(Project.status)
        )
        revenue = await self.session.execute(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(
                Payment.payment_status == PaymentStatus.COMPLETED
            )
        )
        status_counts = {status.value: 0 for status in ProjectStatus}
        for status, count in by_status.all():
            status_counts[status.value] = int(count)
        return {
            "total_clients": int(clients.scalar() or 0),
            "total_projects": sum(status_counts.values()),
            "projects_by_status": status_counts,
            "revenue": Decimal(str(revenue.scalar() or 0)).quantize(Decimal("0.01")),
        }
