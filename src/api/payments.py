"""Payment endpoints: Stripe payment intents and webhook delivery."""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel, Field

from src.api.deps import get_booking_manager, get_payment_gateway
from src.api.errors import http_error
from src.bookings.errors import BookingError, ProjectNotFoundError
from src.bookings.service import BookingLifecycleManager
from src.core.config import settings
from src.core.logging import get_logger
from src.models.payment import PaymentMethod, PaymentStatus
from src.models.project import ProjectStatus
from src.payments.gateway import StripeGateway

logger = get_logger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])

Manager = Annotated[BookingLifecycleManager, Depends(get_booking_manager)]
Gateway = Annotated[StripeGateway, Depends(get_payment_gateway)]


class CreateIntentRequest(BaseModel):
    project_id: int
    payment_method: PaymentMethod = PaymentMethod.STRIPE
    amount: Decimal | None = Field(default=None, gt=0)


class CreateIntentResponse(BaseModel):
    payment_intent_id: str
    client_secret: str | None
    amount: Decimal
    currency: str


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str = Field(min_length=1, max_length=255)


class PaymentOutcomeResponse(BaseModel):
    """Result of applying a gateway-reported outcome."""

    payment_intent_id: str
    outcome: str
    payment_status: PaymentStatus
    project_status: ProjectStatus
    applied: bool


class WebhookResponse(BaseModel):
    received: bool = True
    handled: bool


@router.post("/create-intent", response_model=CreateIntentResponse)
async def create_payment_intent(
    payload: CreateIntentRequest,
    manager: Manager,
    _gateway: Gateway,
) -> CreateIntentResponse:
    """Start a payment for an approved booking."""
    try:
        start = await manager.begin_payment(
            payload.project_id,
            payment_method=payload.payment_method,
            amount=payload.amount,
        )
    except BookingError as exc:
        raise http_error(exc) from exc
    return CreateIntentResponse(
        payment_intent_id=start.payment_intent_id,
        client_secret=start.client_secret,
        amount=start.amount,
        currency=start.currency,
    )


@router.post("/confirm", response_model=PaymentOutcomeResponse)
async def confirm_payment(
    payload: ConfirmPaymentRequest,
    manager: Manager,
    gateway: Gateway,
) -> PaymentOutcomeResponse:
    """Fetch the intent from Stripe and record whatever it reports."""
    try:
        intent = await gateway.retrieve_intent(payload.payment_intent_id)
        if intent.project_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Payment intent is not linked to a booking",
            )
        result = await manager.record_payment_outcome(
            intent.project_id,
            gateway_reference=intent.id,
            amount=intent.amount,
            outcome=intent.outcome,
        )
    except BookingError as exc:
        raise http_error(exc) from exc

    return PaymentOutcomeResponse(
        payment_intent_id=intent.id,
        outcome=intent.outcome.value,
        payment_status=result.payment_status,
        project_status=result.project_status,
        applied=result.applied,
    )


@router.post("/webhook", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    manager: Manager,
    gateway: Gateway,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
) -> WebhookResponse:
    """Apply ``payment_intent.*`` events.

    Events for unknown bookings are acknowledged so Stripe stops redelivering
    them; store failures return 500 so Stripe retries.
    """
    if not settings.stripe_webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stripe webhook secret is not configured",
        )

    payload = await request.body()
    try:
        event = gateway.construct_event(
            payload, stripe_signature, settings.stripe_webhook_secret
        )
    except BookingError as exc:
        raise http_error(exc) from exc

    outcome = event.outcome
    if outcome is None or event.intent is None:
        logger.debug("stripe_webhook_ignored", event_id=event.id, event_type=event.type)
        return WebhookResponse(handled=False)

    project_id = event.intent.project_id
    if project_id is None:
        logger.warning(
            "stripe_webhook_unlinked_intent",
            event_id=event.id,
            payment_intent_id=event.intent.id,
        )
        return WebhookResponse(handled=False)

    try:
        await manager.record_payment_outcome(
            project_id,
            gateway_reference=event.intent.id,
            amount=event.intent.amount,
            outcome=outcome,
        )
    except ProjectNotFoundError:
        logger.warning(
            "stripe_webhook_unknown_project",
            event_id=event.id,
            project_id=project_id,
        )
        return WebhookResponse(handled=False)
    except BookingError as exc:
        raise http_error(exc) from exc

    logger.info("stripe_webhook_processed", event_id=event.id, event_type=event.type)
    return WebhookResponse(handled=True)
