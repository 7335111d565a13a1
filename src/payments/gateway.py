"""Stripe payment intent gateway."""

import asyncio
import enum
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe

from src.bookings.errors import PaymentGatewayError, ValidationError
from src.core.logging import get_logger
from src.payments.circuit_breaker import CircuitBreaker, CircuitBreakerError

logger = get_logger(__name__)

CENTS = Decimal("100")

# Errors caused by the request itself; they say nothing about Stripe's health.
CLIENT_ERRORS: tuple[type[Exception], ...] = (
    stripe.CardError,
    stripe.InvalidRequestError,
)


class PaymentOutcome(str, enum.Enum):
    """Terminal (or not yet terminal) result of a payment attempt."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PENDING = "pending"


INTENT_STATUS_OUTCOMES = {
    "succeeded": PaymentOutcome.SUCCEEDED,
    "canceled": PaymentOutcome.CANCELLED,
    "requires_payment_method": PaymentOutcome.FAILED,
}

EVENT_TYPE_OUTCOMES = {
    "payment_intent.succeeded": PaymentOutcome.SUCCEEDED,
    "payment_intent.payment_failed": PaymentOutcome.FAILED,
    "payment_intent.canceled": PaymentOutcome.CANCELLED,
}


def outcome_from_intent_status(status: str) -> PaymentOutcome:
    """Map a PaymentIntent status onto a lifecycle outcome.

    ``requires_payment_method`` is what Stripe reports after a declined
    attempt; processing and action-required states are still pending.
    """
    return INTENT_STATUS_OUTCOMES.get(status, PaymentOutcome.PENDING)


def outcome_from_event_type(event_type: str) -> PaymentOutcome | None:
    """Map a webhook event type, or None for events we ignore."""
    return EVENT_TYPE_OUTCOMES.get(event_type)


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to integer cents."""
    return int((amount * CENTS).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(cents: int | None) -> Decimal:
    return (Decimal(cents or 0) / CENTS).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class PaymentIntentResult:
    """The parts of a PaymentIntent the lifecycle cares about."""

    id: str
    status: str
    amount: Decimal
    client_secret: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    @property
    def outcome(self) -> PaymentOutcome:
        return outcome_from_intent_status(self.status)

    @property
    def project_id(self) -> int | None:
        raw = self.metadata.get("project_id")
        return int(raw) if raw and str(raw).isdigit() else None


@dataclass(frozen=True)
class GatewayEvent:
    """A verified webhook event."""

    id: str
    type: str
    intent: PaymentIntentResult | None

    @property
    def outcome(self) -> PaymentOutcome | None:
        return outcome_from_event_type(self.type)


def _intent_result(intent: Any) -> PaymentIntentResult:
    amount = intent.get("amount_received") or intent.get("amount")
    return PaymentIntentResult(
        id=intent["id"],
        status=intent["status"],
        amount=from_minor_units(amount),
        client_secret=intent.get("client_secret"),
        metadata={k: str(v) for k, v in dict(intent.get("metadata") or {}).items()},
    )


class StripeGateway:
    """Hosted payment intents through the Stripe API.

    The SDK is synchronous, so every call runs in a worker thread and,
    when a breaker is supplied, through the ``stripe`` circuit.
    """

    def __init__(
        self,
        api_key: str,
        currency: str = "aud",
        breaker: CircuitBreaker | None = None,
        client: stripe.StripeClient | None = None,
    ) -> None:
        self.currency = currency.lower()
        self.breaker = breaker
        self._client = client or stripe.StripeClient(api_key)

    async def _call(self, func: Any, *args: Any, **kwargs: Any) -> Any:
        try:
            if self.breaker is not None:
                return await self.breaker.call(asyncio.to_thread, func, *args, **kwargs)
            return await asyncio.to_thread(func, *args, **kwargs)
        except CircuitBreakerError as exc:
            raise PaymentGatewayError("Payment provider is temporarily unavailable") from exc
        except stripe.StripeError as exc:
            logger.error(
                "stripe_request_failed",
                error=str(exc),
                code=getattr(exc, "code", None),
            )
            raise PaymentGatewayError(exc.user_message or str(exc)) from exc

    async def create_intent(
        self,
        amount: Decimal,
        currency: str | None = None,
        metadata: dict[str, str] | None = None,
        idempotency_key: str | None = None,
    ) -> PaymentIntentResult:
        """Create a PaymentIntent for ``amount`` in major currency units.

        Retrying with the same ``idempotency_key`` returns the intent Stripe
        created the first time instead of opening another one.
        """
        params = {
            "amount": to_minor_units(amount),
            "currency": (currency or self.currency).lower(),
            "metadata": metadata or {},
            "automatic_payment_methods": {"enabled": True},
        }
        options = {"idempotency_key": idempotency_key} if idempotency_key else {}
        intent = await self._call(
            self._client.v1.payment_intents.create, params=params, options=options
        )
        result = _intent_result(intent)
        logger.info(
            "payment_intent_created",
            payment_intent_id=result.id,
            amount=str(amount),
            currency=params["currency"],
        )
        return result

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentResult:
        intent = await self._call(self._client.v1.payment_intents.retrieve, intent_id)
        return _intent_result(intent)

    async def cancel_intent(self, intent_id: str) -> PaymentIntentResult:
        intent = await self._call(self._client.v1.payment_intents.cancel, intent_id)
        logger.info("payment_intent_cancelled", payment_intent_id=intent_id)
        return _intent_result(intent)

    def construct_event(
        self, payload: bytes, signature: str | None, secret: str
    ) -> GatewayEvent:
        """Verify a webhook delivery and parse it.

        Raises:
            ValidationError: If the payload or signature is invalid.
        """
        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            logger.warning(
                "stripe_webhook_verify_failed",
                signature_present=bool(signature),
                error=str(exc),
            )
            raise ValidationError("Webhook signature verification failed") from exc

        data_object = event["data"]["object"]
        intent = None
        if data_object.get("object") == "payment_intent":
            intent = _intent_result(data_object)
        return GatewayEvent(id=event["id"], type=event["type"], intent=intent)
