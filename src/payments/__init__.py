"""Payment gateway integration and outbound call protection."""

from src.payments.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerError,
    CircuitState,
)
from src.payments.gateway import (
    GatewayEvent,
    PaymentIntentResult,
    PaymentOutcome,
    StripeGateway,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerError",
    "CircuitState",
    "GatewayEvent",
    "PaymentIntentResult",
    "PaymentOutcome",
    "StripeGateway",
]
