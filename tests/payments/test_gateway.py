"""Tests for the Stripe gateway with the SDK client faked out."""

import hashlib
import hmac
import json
import time
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import stripe

from src.bookings.errors import PaymentGatewayError, ValidationError
from src.payments.gateway import (
    PaymentOutcome,
    StripeGateway,
    from_minor_units,
    outcome_from_event_type,
    outcome_from_intent_status,
    to_minor_units,
)

WEBHOOK_SECRET = "whsec_test"


def _intent(**overrides) -> dict:
    intent = {
        "id": "pi_123",
        "object": "payment_intent",
        "status": "requires_payment_method",
        "amount": 150050,
        "client_secret": "pi_123_secret_abc",
        "metadata": {"project_id": "9"},
    }
    intent.update(overrides)
    return intent


def _gateway(client: MagicMock) -> StripeGateway:
    return StripeGateway("sk_test_123", currency="AUD", client=client)


def _signed(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode("utf-8") + payload
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def test_minor_unit_conversion() -> None:
    assert to_minor_units(Decimal("1500.00")) == 150000
    assert to_minor_units(Decimal("19.995")) == 2000
    assert from_minor_units(150050) == Decimal("1500.50")
    assert from_minor_units(None) == Decimal("0.00")


@pytest.mark.parametrize(
    ("status", "outcome"),
    [
        ("succeeded", PaymentOutcome.SUCCEEDED),
        ("canceled", PaymentOutcome.CANCELLED),
        ("requires_payment_method", PaymentOutcome.FAILED),
        ("processing", PaymentOutcome.PENDING),
        ("requires_action", PaymentOutcome.PENDING),
    ],
)
def test_outcome_from_intent_status(status: str, outcome: PaymentOutcome) -> None:
    assert outcome_from_intent_status(status) is outcome


def test_outcome_from_event_type() -> None:
    assert outcome_from_event_type("payment_intent.succeeded") is PaymentOutcome.SUCCEEDED
    assert outcome_from_event_type("payment_intent.payment_failed") is PaymentOutcome.FAILED
    assert outcome_from_event_type("payment_intent.canceled") is PaymentOutcome.CANCELLED
    assert outcome_from_event_type("charge.refunded") is None


@pytest.mark.asyncio
async def test_create_intent_sends_cents_and_metadata() -> None:
    client = MagicMock()
    client.v1.payment_intents.create.return_value = _intent()

    result = await _gateway(client).create_intent(
        Decimal("1500.50"), metadata={"project_id": "9"}
    )

    params = client.v1.payment_intents.create.call_args.kwargs["params"]
    assert params["amount"] == 150050
    assert params["currency"] == "aud"
    assert params["automatic_payment_methods"] == {"enabled": True}
    assert result.id == "pi_123"
    assert result.client_secret == "pi_123_secret_abc"
    assert result.amount == Decimal("1500.50")
    assert result.project_id == 9


@pytest.mark.asyncio
async def test_create_intent_passes_idempotency_key() -> None:
    client = MagicMock()
    client.v1.payment_intents.create.return_value = _intent()

    await _gateway(client).create_intent(Decimal("10"), idempotency_key="project-9-payment-1")

    options = client.v1.payment_intents.create.call_args.kwargs["options"]
    assert options == {"idempotency_key": "project-9-payment-1"}


@pytest.mark.asyncio
async def test_cancel_intent() -> None:
    client = MagicMock()
    client.v1.payment_intents.cancel.return_value = _intent(status="canceled")

    result = await _gateway(client).cancel_intent("pi_123")

    client.v1.payment_intents.cancel.assert_called_once_with("pi_123")
    assert result.outcome is PaymentOutcome.CANCELLED


@pytest.mark.asyncio
async def test_retrieve_intent_maps_outcome() -> None:
    client = MagicMock()
    client.v1.payment_intents.retrieve.return_value = _intent(
        status="succeeded", amount_received=150050
    )

    result = await _gateway(client).retrieve_intent("pi_123")

    client.v1.payment_intents.retrieve.assert_called_once_with("pi_123")
    assert result.outcome is PaymentOutcome.SUCCEEDED


@pytest.mark.asyncio
async def test_stripe_errors_become_gateway_errors() -> None:
    client = MagicMock()
    client.v1.payment_intents.create.side_effect = stripe.APIConnectionError(
        "Network error"
    )

    with pytest.raises(PaymentGatewayError):
        await _gateway(client).create_intent(Decimal("10"))


def test_construct_event_verifies_signature() -> None:
    payload = json.dumps(
        {
            "id": "evt_1",
            "object": "event",
            "type": "payment_intent.succeeded",
            "data": {"object": _intent(status="succeeded")},
        }
    ).encode("utf-8")

    event = _gateway(MagicMock()).construct_event(payload, _signed(payload), WEBHOOK_SECRET)

    assert event.id == "evt_1"
    assert event.outcome is PaymentOutcome.SUCCEEDED
    assert event.intent is not None
    assert event.intent.project_id == 9


def test_construct_event_rejects_bad_signature() -> None:
    payload = b'{"id": "evt_1", "object": "event", "type": "payment_intent.succeeded"}'

    with pytest.raises(ValidationError):
        _gateway(MagicMock()).construct_event(
            payload, _signed(payload, secret="whsec_other"), WEBHOOK_SECRET
        )
