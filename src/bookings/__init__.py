"""Booking lifecycle domain: errors, status machine, storage and service."""

from src.bookings.errors import (
    BookingError,
    CapacityExceededError,
    InvalidTransitionError,
    NotificationError,
    PaymentGatewayError,
    PersistenceError,
    ProjectNotFoundError,
    ValidationError,
)
from src.bookings.state_machine import ProjectStateMachine, create_state_machine

__all__ = [
    "BookingError",
    "CapacityExceededError",
    "InvalidTransitionError",
    "NotificationError",
    "PaymentGatewayError",
    "PersistenceError",
    "ProjectNotFoundError",
    "ProjectStateMachine",
    "ValidationError",
    "create_state_machine",
]
