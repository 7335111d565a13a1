"""Exceptions raised by the booking lifecycle."""

from src.models.project import ProjectStatus


class BookingError(Exception):
    """Base class for booking lifecycle errors."""


class ValidationError(BookingError):
    """Booking input is missing or malformed."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class CapacityExceededError(BookingError):
    """The requested booking month has no free slots."""

    def __init__(self, month: str, current: int, maximum: int):
        self.month = month
        self.current = current
        self.maximum = maximum
        super().__init__(f"{month} is fully booked ({current}/{maximum} slots taken)")


class ProjectNotFoundError(BookingError):
    """No project exists with the given id."""

    def __init__(self, project_id: int):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


class InvalidTransitionError(BookingError):
    """The project's current status does not allow the requested change."""

    def __init__(self, project_id: int, current: ProjectStatus, requested: str):
        self.project_id = project_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot {requested} project {project_id} while it is {current.value}"
        )


class PersistenceError(BookingError):
    """The underlying store failed."""


class PaymentGatewayError(BookingError):
    """The payment provider rejected or failed a request."""


class NotificationError(BookingError):
    """An email could not be delivered. Logged, never surfaced."""
