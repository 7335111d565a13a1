"""Booking lifecycle: creation, capacity, admin decisions and payments.

Every state change is committed before its notification is dispatched, so
an email can never announce something that was rolled back, and a failed
email can never undo a committed change.
"""

import re
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.bookings.errors import (
    BookingError,
    CapacityExceededError,
    InvalidTransitionError,
    PaymentGatewayError,
    PersistenceError,
    ProjectNotFoundError,
    ValidationError,
)
from src.bookings.repository import BookingRepository
from src.bookings.state_machine import TransitionNotAllowed
from src.core.logging import client_id_ctx, get_logger, project_id_ctx
from src.models.client import Client
from src.models.payment import PaymentMethod, PaymentStatus
from src.models.project import Project, ProjectStatus, ProjectType
from src.notifications.service import NotificationKind, Notifier
from src.payments.gateway import PaymentOutcome, StripeGateway

logger = get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")
TWO_PLACES = Decimal("0.01")
# Money columns are NUMERIC(10, 2).
MAX_AMOUNT = Decimal("100000000")

DEFAULT_SPECIFICATIONS = "No specifications provided"
DEFAULT_WEBSITE_TYPE = "other"
DEFAULT_COLORS = {
    "primary_color": "#8B4513",
    "secondary_color": "#D2B48C",
    "accent_color": "#CD853F",
}

PAYMENT_STATUS_FOR_OUTCOME = {
    PaymentOutcome.SUCCEEDED: PaymentStatus.COMPLETED,
    PaymentOutcome.FAILED: PaymentStatus.FAILED,
    PaymentOutcome.CANCELLED: PaymentStatus.FAILED,
    PaymentOutcome.PENDING: PaymentStatus.PENDING,
}


@dataclass(frozen=True)
class BookingResult:
    """Outcome of a successful create_booking call."""

    project_id: int
    client_id: int
    client_created: bool
    status: ProjectStatus
    project: Project


@dataclass(frozen=True)
class Availability:
    """Slot usage for one booking month."""

    month: str
    current_bookings: int
    max_bookings: int

    @property
    def available(self) -> bool:
        return self.current_bookings < self.max_bookings


@dataclass(frozen=True)
class PaymentRecordResult:
    """What record_payment_outcome did."""

    payment_id: int
    payment_status: PaymentStatus
    project_status: ProjectStatus
    applied: bool
    """False when the delivery was a replay and nothing changed."""


@dataclass(frozen=True)
class PaymentStart:
    """A payment intent the client can confirm on the frontend."""

    payment_intent_id: str
    client_secret: str | None
    amount: Decimal
    currency: str


def _clean(value: str | None) -> str:
    return (value or "").strip()


def _optional(value: str | None) -> str | None:
    cleaned = _clean(value)
    return cleaned or None


def parse_amount(value: object, field: str) -> Decimal:
    """Parse a non-negative money amount; blank means zero."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal("0.00")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError(f"{field} must be a number", field=field) from exc
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} must be a non-negative amount", field=field)
    if amount < MAX_AMOUNT:
        amount = amount.quantize(TWO_PLACES)
    if amount >= MAX_AMOUNT:
        raise ValidationError(f"{field} must be less than {MAX_AMOUNT}", field=field)
    return amount


def parse_project_type(value: str | ProjectType | None) -> ProjectType:
    if isinstance(value, ProjectType):
        return value
    raw = _clean(value)
    if not raw:
        return ProjectType.SERVICE_ONLY
    try:
        return ProjectType(raw.lower())
    except ValueError as exc:
        allowed = ", ".join(t.value for t in ProjectType)
        raise ValidationError(
            f"Unknown project type '{raw}'. Expected one of: {allowed}",
            field="project_type",
        ) from exc


def validate_client(name: str | None, email: str | None) -> tuple[str, str]:
    """Return the cleaned (name, email) or raise ValidationError."""
    clean_name = _clean(name)
    clean_email = _clean(email).lower()
    if not clean_name or not clean_email:
        raise ValidationError("Client name and email are required")
    if len(clean_name) > 255:
        raise ValidationError("Client name is too long", field="client_name")
    if len(clean_email) > 255 or not EMAIL_PATTERN.match(clean_email):
        raise ValidationError(
            "Please provide a valid email address", field="client_email"
        )
    return clean_name, clean_email


def project_payload(project: Project, client: Client | None) -> dict[str, Any]:
    """Snapshot of a project for notification templates."""
    return {
        "project_id": project.id,
        "project_type": project.project_type.value,
        "booking_month": project.booking_month,
        "total_price": project.total_price,
        "specifications": project.specifications,
        "status": project.status.value,
        "client_name": client.name if client else None,
        "client_email": client.email if client else None,
    }


class BookingLifecycleManager:
    """Runs booking operations against one request's session.

    Args:
        session: Request-scoped database session. The manager commits it.
        notifier: Process-wide notifier for lifecycle emails.
        monthly_capacity: Maximum slot-holding bookings per month.
        admin_email: Recipient for new-booking alerts, if any.
        gateway: Payment gateway, required only for begin_payment.
    """

    def __init__(
        self,
        session: AsyncSession,
        notifier: Notifier,
        monthly_capacity: int,
        admin_email: str | None = None,
        gateway: StripeGateway | None = None,
    ) -> None:
        self.session = session
        self.repository = BookingRepository(session)
        self.notifier = notifier
        self.monthly_capacity = monthly_capacity
        self.admin_email = admin_email
        self.gateway = gateway

    @asynccontextmanager
    async def _unit_of_work(self, operation: str) -> AsyncIterator[None]:
        """Commit on success; roll back and translate store failures."""
        try:
            yield
            await self.session.commit()
        except BookingError:
            await self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.exception("booking_persistence_failed", operation=operation)
            raise PersistenceError(f"Failed to {operation}") from exc

    async def _load_project(self, project_id: int, for_update: bool = True) -> Project:
        project = await self.repository.get_project(project_id, for_update=for_update)
        if project is None:
            raise ProjectNotFoundError(project_id)
        project_id_ctx.set(project.id)
        return project

    async def _check_capacity(self, month: str) -> None:
        await self.repository.lock_month(month)
        current = await self.repository.count_projects_for_month(month)
        if current >= self.monthly_capacity:
            logger.info(
                "booking_rejected_capacity",
                booking_month=month,
                current=current,
                maximum=self.monthly_capacity,
            )
            raise CapacityExceededError(month, current, self.monthly_capacity)

    async def check_availability(self, month: str) -> Availability:
        """Report slot usage for ``month``. Read-only."""
        clean_month = _clean(month)
        if not clean_month:
            raise ValidationError("Booking month is required", field="booking_month")
        try:
            current = await self.repository.count_projects_for_month(clean_month)
        except SQLAlchemyError as exc:
            logger.exception("availability_check_failed", booking_month=clean_month)
            raise PersistenceError("Failed to check availability") from exc
        return Availability(
            month=clean_month,
            current_bookings=current,
            max_bookings=self.monthly_capacity,
        )

    async def create_booking(
        self,
        client_name: str | None,
        client_email: str | None,
        project_type: str | ProjectType | None = None,
        specifications: str | None = None,
        booking_month: str | None = None,
        base_price: object = None,
        total_price: object = None,
        website_type: str | None = None,
        primary_color: str | None = None,
        secondary_color: str | None = None,
        accent_color: str | None = None,
        phone: str | None = None,
    ) -> BookingResult:
        """Validate, enforce monthly capacity, and store a pending booking.

        All validation happens before the store is touched.

        Raises:
            ValidationError: Missing or malformed input.
            CapacityExceededError: The month is full.
            PersistenceError: The store failed.
        """
        name, email = validate_client(client_name, client_email)
        kind = parse_project_type(project_type)
        month = _optional(booking_month)
        if month is not None and len(month) > 50:
            raise ValidationError("Booking month is too long", field="booking_month")
        clean_phone = _optional(phone)
        if clean_phone is not None and len(clean_phone) > 20:
            raise ValidationError("Phone number is too long", field="phone")

        colors = {}
        for field, supplied in (
            ("primary_color", primary_color),
            ("secondary_color", secondary_color),
            ("accent_color", accent_color),
        ):
            value = _optional(supplied) or DEFAULT_COLORS[field]
            if not COLOR_PATTERN.match(value):
                raise ValidationError(f"{field} must be a #RRGGBB color", field=field)
            colors[field] = value

        fields = {
            "project_type": kind,
            "specifications": _optional(specifications) or DEFAULT_SPECIFICATIONS,
            "website_type": _optional(website_type) or DEFAULT_WEBSITE_TYPE,
            "base_price": parse_amount(base_price, "base_price"),
            "total_price": parse_amount(total_price, "total_price"),
            "booking_month": month,
            **colors,
        }

        async with self._unit_of_work("create booking"):
            if kind.uses_capacity and month is not None:
                await self._check_capacity(month)

            client, created = await self.repository.find_or_create_client(
                name, email, clean_phone
            )
            client_id_ctx.set(client.id)
            project = await self.repository.create_project(client_id=client.id, **fields)
            project_id_ctx.set(project.id)

        logger.info(
            "booking_created",
            project_id=project.id,
            client_id=client.id,
            client_created=created,
            project_type=kind.value,
            booking_month=month,
        )

        payload = project_payload(project, client)
        self.notifier.dispatch(NotificationKind.BOOKING_RECEIVED, client.email, payload)
        if self.admin_email:
            self.notifier.dispatch(NotificationKind.ADMIN_ALERT, self.admin_email, payload)

        return BookingResult(
            project_id=project.id,
            client_id=client.id,
            client_created=created,
            status=project.status,
            project=project,
        )

    async def _decide(
        self,
        project_id: int,
        target: ProjectStatus,
        kind: NotificationKind,
    ) -> Project:
        """Apply an approve/decline decision to a pending project.

        Repeating the decision already recorded is a no-op without a second
        email; any other non-pending state is an invalid transition.
        """
        event = "approve" if target == ProjectStatus.APPROVED else "decline"
        async with self._unit_of_work(f"{event} booking"):
            project = await self._load_project(project_id)
            if project.status == target:
                logger.info("booking_decision_repeated", project_id=project.id, status=target.value)
                return project
            current = project.status
            try:
                await self.repository.update_project_status(project, event)
            except TransitionNotAllowed as exc:
                raise InvalidTransitionError(project.id, current, event) from exc

        self.notifier.dispatch(
            kind, project.client.email, project_payload(project, project.client)
        )
        return project

    async def approve_booking(self, project_id: int) -> Project:
        """pending -> approved, then notify the client."""
        return await self._decide(project_id, ProjectStatus.APPROVED, NotificationKind.APPROVED)

    async def decline_booking(self, project_id: int) -> Project:
        """pending -> declined, then notify the client. Nothing is ever charged."""
        return await self._decide(project_id, ProjectStatus.DECLINED, NotificationKind.DECLINED)

    async def _transition(self, project_id: int, event: str) -> Project:
        async with self._unit_of_work(f"{event} project"):
            project = await self._load_project(project_id)
            current = project.status
            try:
                await self.repository.update_project_status(project, event)
            except TransitionNotAllowed as exc:
                raise InvalidTransitionError(project.id, current, event) from exc
        return project

    async def complete_project(self, project_id: int) -> Project:
        """in_progress -> completed."""
        return await self._transition(project_id, "complete")

    async def cancel_booking(self, project_id: int) -> Project:
        """approved/in_progress -> cancelled. Frees the project's month slot."""
        return await self._transition(project_id, "cancel")

    async def get_booking(self, project_id: int) -> Project:
        try:
            return await self._load_project(project_id, for_update=False)
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to load booking") from exc

    async def list_bookings(
        self,
        status: ProjectStatus | None = None,
        month: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[Sequence[Project], int]:
        try:
            return await self.repository.list_projects(
                status=status, month=_optional(month), limit=limit, offset=offset
            )
        except SQLAlchemyError as exc:
            raise PersistenceError("Failed to list bookings") from exc

    async def begin_payment(
        self,
        project_id: int,
        payment_method: PaymentMethod | str = PaymentMethod.STRIPE,
        amount: object = None,
    ) -> PaymentStart:
        """Open a payment intent for an approved project.

        A project keeps at most one pending intent. Asking again for the
        same amount hands back the open intent; a different amount cancels
        the open one with Stripe before a replacement is created.

        Raises:
            ValidationError: Unsupported method or bad amount.
            InvalidTransitionError: The project is not approved.
            PaymentGatewayError: Stripe failed or is not configured.
        """
        try:
            method = PaymentMethod(payment_method)
        except ValueError as exc:
            raise ValidationError(
                f"Unknown payment method '{payment_method}'", field="payment_method"
            ) from exc
        if method is not PaymentMethod.STRIPE:
            raise ValidationError(
                f"Payment method '{method.value}' is not supported yet",
                field="payment_method",
            )
        if self.gateway is None:
            raise PaymentGatewayError("Payment gateway is not configured")

        async with self._unit_of_work("begin payment"):
            project = await self._load_project(project_id)
            if project.status != ProjectStatus.APPROVED:
                raise InvalidTransitionError(project.id, project.status, "charge")

            charge = project.total_price if amount is None else parse_amount(amount, "amount")
            if charge <= 0:
                raise ValidationError("Payment amount must be greater than zero", field="amount")

            payments = await self.repository.list_project_payments(project.id)
            intent = None
            for payment in payments:
                if payment.payment_status is not PaymentStatus.PENDING:
                    continue
                if payment.payment_method is not method:
                    continue
                if intent is None and payment.amount == charge:
                    open_intent = await self.gateway.retrieve_intent(payment.gateway_reference)
                    if open_intent.outcome is PaymentOutcome.SUCCEEDED:
                        raise ValidationError(
                            f"Payment {payment.gateway_reference} already succeeded",
                            field="project_id",
                        )
                    if open_intent.outcome is not PaymentOutcome.CANCELLED:
                        intent = open_intent
                        logger.info(
                            "payment_intent_reused",
                            project_id=project.id,
                            payment_intent_id=intent.id,
                        )
                        continue
                else:
                    await self.gateway.cancel_intent(payment.gateway_reference)
                payment.payment_status = PaymentStatus.FAILED
                logger.info(
                    "payment_intent_superseded",
                    project_id=project.id,
                    payment_intent_id=payment.gateway_reference,
                )
            await self.repository.flush()

            if intent is None:
                intent = await self.gateway.create_intent(
                    charge,
                    metadata={"project_id": str(project.id), "client_id": str(project.client_id)},
                    idempotency_key=f"project-{project.id}-payment-{len(payments) + 1}-{charge}",
                )
                await self.repository.upsert_payment(
                    intent.id,
                    project_id=project.id,
                    amount=charge,
                    payment_method=method,
                    payment_status=PaymentStatus.PENDING,
                )

        return PaymentStart(
            payment_intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=charge,
            currency=self.gateway.currency,
        )

    async def record_payment_outcome(
        self,
        project_id: int,
        gateway_reference: str,
        amount: object,
        outcome: PaymentOutcome | str,
        payment_method: PaymentMethod | str = PaymentMethod.STRIPE,
    ) -> PaymentRecordResult:
        """Apply a gateway-reported payment result.

        Safe to call repeatedly for the same ``gateway_reference``: a
        replayed outcome finds the payment already in the target status and
        changes nothing. A cancellation that follows a failure for the same
        intent still cancels an approved booking, unless another payment
        for the project is pending or completed.
        """
        reference = _clean(gateway_reference)
        if not reference:
            raise ValidationError("Gateway reference is required", field="gateway_reference")
        try:
            result = PaymentOutcome(outcome)
            method = PaymentMethod(payment_method)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        charge = parse_amount(amount, "amount")

        async with self._unit_of_work("record payment"):
            project = await self._load_project(project_id)
            existing = await self.repository.get_payment_by_reference(reference, for_update=True)
            if existing is not None and existing.project_id != project.id:
                raise ValidationError(
                    f"Payment {reference} belongs to another project",
                    field="gateway_reference",
                )

            live_payments = [
                payment
                for payment in await self.repository.list_project_payments(
                    project.id, statuses=(PaymentStatus.PENDING, PaymentStatus.COMPLETED)
                )
                if payment.gateway_reference != reference
            ]

            target = PAYMENT_STATUS_FOR_OUTCOME[result]
            if result is PaymentOutcome.SUCCEEDED and project.status not in (
                ProjectStatus.APPROVED,
                ProjectStatus.IN_PROGRESS,
                ProjectStatus.COMPLETED,
            ):
                # Money arrived for a booking that was never approved. Keep
                # the row for reconciliation but never mark it completed.
                logger.warning(
                    "payment_integrity_warning",
                    reason="booking_not_approved",
                    project_id=project.id,
                    project_status=project.status.value,
                    gateway_reference=reference,
                    outcome=result.value,
                )
                target = PaymentStatus.PENDING
            elif (
                result is PaymentOutcome.SUCCEEDED
                and (existing is None or existing.payment_status is not PaymentStatus.COMPLETED)
                and any(p.payment_status is PaymentStatus.COMPLETED for p in live_payments)
            ):
                logger.warning(
                    "payment_integrity_warning",
                    reason="duplicate_charge",
                    project_id=project.id,
                    project_status=project.status.value,
                    gateway_reference=reference,
                    outcome=result.value,
                )

            # A cancelled intent only ends the booking when nothing else is
            # still paying for it.
            cancels_project = (
                result is PaymentOutcome.CANCELLED
                and project.status == ProjectStatus.APPROVED
                and not live_payments
            )

            if (
                existing is not None
                and existing.payment_status == target
                and not cancels_project
            ):
                logger.info(
                    "payment_outcome_replayed",
                    gateway_reference=reference,
                    payment_status=target.value,
                )
                return PaymentRecordResult(
                    payment_id=existing.id,
                    payment_status=existing.payment_status,
                    project_status=project.status,
                    applied=False,
                )
            if existing is not None and existing.payment_status in (
                PaymentStatus.COMPLETED,
                PaymentStatus.REFUNDED,
            ):
                logger.warning(
                    "payment_outcome_ignored_terminal",
                    gateway_reference=reference,
                    payment_status=existing.payment_status.value,
                    outcome=result.value,
                )
                return PaymentRecordResult(
                    payment_id=existing.id,
                    payment_status=existing.payment_status,
                    project_status=project.status,
                    applied=False,
                )

            payment, _ = await self.repository.upsert_payment(
                reference,
                project_id=project.id,
                amount=charge,
                payment_method=method,
                payment_status=target,
            )

            if project.status == ProjectStatus.APPROVED:
                if target is PaymentStatus.COMPLETED:
                    await self.repository.update_project_status(project, "start")
                elif cancels_project:
                    await self.repository.update_project_status(project, "cancel")
                elif result is PaymentOutcome.CANCELLED:
                    logger.info(
                        "payment_cancellation_kept_booking",
                        project_id=project.id,
                        gateway_reference=reference,
                        live_payments=len(live_payments),
                    )

        logger.info(
            "payment_outcome_recorded",
            gateway_reference=reference,
            payment_status=payment.payment_status.value,
            project_status=project.status.value,
        )

        if payment.payment_status is PaymentStatus.COMPLETED:
            payload = project_payload(project, project.client)
            payload.update(amount=payment.amount, payment_reference=reference)
            self.notifier.dispatch(
                NotificationKind.PAYMENT_CONFIRMED, project.client.email, payload
            )

        return PaymentRecordResult(
            payment_id=payment.id,
            payment_status=payment.payment_status,
            project_status=project.status,
            applied=True,
        )
