"""Translate booking domain errors into HTTP responses."""

from fastapi import HTTPException, status

from src.bookings.errors import (
    BookingError,
    CapacityExceededError,
    InvalidTransitionError,
    PaymentGatewayError,
    ProjectNotFoundError,
    ValidationError,
)

STATUS_FOR_ERROR: list[tuple[type[BookingError], int]] = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (CapacityExceededError, status.HTTP_400_BAD_REQUEST),
    (ProjectNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (PaymentGatewayError, status.HTTP_502_BAD_GATEWAY),
]


def http_error(exc: BookingError) -> HTTPException:
    """Map a domain error onto an HTTPException; unknown errors are 500s."""
    for error_type, status_code in STATUS_FOR_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(exc) or "Internal server error",
    )
