"""Tests for payment API endpoints with a fake Stripe gateway."""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from src.bookings.errors import ValidationError
from src.core.config import settings
from src.main import app
from src.notifications.service import NotificationKind
from src.payments.gateway import GatewayEvent, PaymentIntentResult


class FakeGateway:
    """In-memory stand-in for StripeGateway."""

    currency = "aud"

    def __init__(self) -> None:
        self.intents: dict[str, PaymentIntentResult] = {}
        self.next_event: GatewayEvent | None = None

    async def create_intent(
        self, amount, currency=None, metadata=None, idempotency_key=None
    ) -> PaymentIntentResult:
        intent = PaymentIntentResult(
            id=f"pi_{len(self.intents) + 1}",
            status="requires_payment_method",
            amount=amount,
            client_secret="secret",
            metadata=metadata or {},
        )
        self.intents[intent.id] = intent
        return intent

    async def retrieve_intent(self, intent_id: str) -> PaymentIntentResult:
        return self.intents[intent_id]

    async def cancel_intent(self, intent_id: str) -> PaymentIntentResult:
        return self.settle(intent_id, "canceled")

    def settle(self, intent_id: str, status: str) -> PaymentIntentResult:
        intent = self.intents[intent_id]
        settled = PaymentIntentResult(
            id=intent.id,
            status=status,
            amount=intent.amount,
            client_secret=intent.client_secret,
            metadata=intent.metadata,
        )
        self.intents[intent_id] = settled
        return settled

    def construct_event(self, payload: bytes, signature: str | None, secret: str) -> GatewayEvent:
        if signature != "valid":
            raise ValidationError("Webhook signature verification failed")
        assert self.next_event is not None
        return self.next_event


@pytest.fixture
def gateway(api_client: AsyncClient) -> FakeGateway:
    fake = FakeGateway()
    app.state.payment_gateway = fake
    return fake


async def _approved_booking(api_client: AsyncClient, headers: dict[str, str]) -> int:
    created = await api_client.post(
        "/api/bookings",
        json={
            "client_name": "Jane Doe",
            "client_email": "jane@example.com",
            "project_type": "landing",
            "booking_month": "2025-08",
            "total_price": "800",
        },
    )
    project_id = created.json()["project_id"]
    await api_client.post(f"/api/bookings/{project_id}/approve", headers=headers)
    return project_id


@pytest.mark.asyncio
async def test_payments_unavailable_without_gateway(api_client: AsyncClient) -> None:
    response = await api_client.post("/api/payments/create-intent", json={"project_id": 1})

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_create_intent_for_pending_booking_conflicts(
    api_client: AsyncClient, gateway: FakeGateway
) -> None:
    created = await api_client.post(
        "/api/bookings",
        json={"client_name": "Jane", "client_email": "jane@example.com"},
    )

    response = await api_client.post(
        "/api/payments/create-intent", json={"project_id": created.json()["project_id"]}
    )

    assert response.status_code == 409
    assert gateway.intents == {}


@pytest.mark.asyncio
async def test_create_and_confirm_payment(
    api_client: AsyncClient,
    gateway: FakeGateway,
    admin_headers: dict[str, str],
    notifier,
) -> None:
    project_id = await _approved_booking(api_client, admin_headers)

    created = await api_client.post(
        "/api/payments/create-intent", json={"project_id": project_id}
    )
    assert created.status_code == 200
    intent_id = created.json()["payment_intent_id"]
    assert created.json()["amount"] == "800.00"
    assert created.json()["currency"] == "aud"

    gateway.settle(intent_id, "succeeded")
    confirmed = await api_client.post(
        "/api/payments/confirm", json={"payment_intent_id": intent_id}
    )
    replayed = await api_client.post(
        "/api/payments/confirm", json={"payment_intent_id": intent_id}
    )

    assert confirmed.status_code == 200
    assert confirmed.json()["payment_status"] == "completed"
    assert confirmed.json()["project_status"] == "in_progress"
    assert confirmed.json()["applied"] is True
    assert replayed.json()["applied"] is False
    assert notifier.kinds().count(NotificationKind.PAYMENT_CONFIRMED) == 1


@pytest.mark.asyncio
async def test_webhook_applies_cancellation(
    api_client: AsyncClient,
    gateway: FakeGateway,
    admin_headers: dict[str, str],
    monkeypatch,
) -> None:
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    project_id = await _approved_booking(api_client, admin_headers)
    gateway.next_event = GatewayEvent(
        id="evt_1",
        type="payment_intent.canceled",
        intent=PaymentIntentResult(
            id="pi_web",
            status="canceled",
            amount=Decimal("800.00"),
            metadata={"project_id": str(project_id)},
        ),
    )

    response = await api_client.post(
        "/api/payments/webhook", content=b"{}", headers={"Stripe-Signature": "valid"}
    )

    assert response.status_code == 200
    assert response.json() == {"received": True, "handled": True}
    booking = await api_client.get(f"/api/bookings/{project_id}", headers=admin_headers)
    assert booking.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(
    api_client: AsyncClient, gateway: FakeGateway, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")

    response = await api_client.post(
        "/api/payments/webhook", content=b"{}", headers={"Stripe-Signature": "forged"}
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_webhook_ignores_unrelated_events(
    api_client: AsyncClient, gateway: FakeGateway, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    gateway.next_event = GatewayEvent(id="evt_2", type="customer.created", intent=None)

    response = await api_client.post(
        "/api/payments/webhook", content=b"{}", headers={"Stripe-Signature": "valid"}
    )

    assert response.json() == {"received": True, "handled": False}


@pytest.mark.asyncio
async def test_webhook_acknowledges_unknown_project(
    api_client: AsyncClient, gateway: FakeGateway, monkeypatch
) -> None:
    monkeypatch.setattr(settings, "stripe_webhook_secret", "whsec_test")
    gateway.next_event = GatewayEvent(
        id="evt_3",
        type="payment_intent.succeeded",
        intent=PaymentIntentResult(
            id="pi_orphan",
            status="succeeded",
            amount=Decimal("10.00"),
            metadata={"project_id": "4040"},
        ),
    )

    response = await api_client.post(
        "/api/payments/webhook", content=b"{}", headers={"Stripe-Signature": "valid"}
    )

    assert response.status_code == 200
    assert response.json()["handled"] is False
