"""Fire-and-forget notification dispatch for booking lifecycle events."""

import asyncio
import enum
from collections.abc import Callable
from typing import Any

from src.bookings.errors import NotificationError
from src.core.logging import get_logger
from src.notifications.mailer import SmtpMailer
from src.notifications.templates import (
    RenderedEmail,
    admin_alert_template,
    approved_template,
    booking_received_template,
    declined_template,
    payment_confirmed_template,
)

logger = get_logger(__name__)


class NotificationKind(str, enum.Enum):
    """Lifecycle events that produce an email."""

    BOOKING_RECEIVED = "booking-received"
    APPROVED = "approved"
    DECLINED = "declined"
    PAYMENT_CONFIRMED = "payment-confirmed"
    ADMIN_ALERT = "admin-alert"


TEMPLATES: dict[NotificationKind, Callable[[dict[str, Any], str], RenderedEmail]] = {
    NotificationKind.BOOKING_RECEIVED: booking_received_template,
    NotificationKind.APPROVED: approved_template,
    NotificationKind.DECLINED: declined_template,
    NotificationKind.PAYMENT_CONFIRMED: payment_confirmed_template,
    NotificationKind.ADMIN_ALERT: admin_alert_template,
}


class Notifier:
    """Renders and sends lifecycle emails without blocking the caller.

    Created once at startup and shared by all requests. ``dispatch`` returns
    immediately; delivery failures are logged and never reach the booking
    operation that triggered them.
    """

    def __init__(self, mailer: SmtpMailer, studio_name: str) -> None:
        self.mailer = mailer
        self.studio_name = studio_name
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def pending(self) -> int:
        """Number of sends still in flight."""
        return len(self._pending)

    def render(self, kind: NotificationKind, payload: dict[str, Any]) -> RenderedEmail:
        return TEMPLATES[kind](payload, self.studio_name)

    async def notify(
        self,
        kind: NotificationKind,
        recipient: str | None,
        payload: dict[str, Any],
    ) -> bool:
        """Send one notification.

        Returns:
            True when the email was accepted by the SMTP server.
        """
        if not recipient:
            logger.warning("notification_skipped_no_recipient", kind=kind.value)
            return False
        if not self.mailer.enabled:
            logger.warning("notification_skipped_smtp_disabled", kind=kind.value)
            return False

        try:
            await self.mailer.send(recipient, self.render(kind, payload))
        except Exception as exc:
            error = NotificationError(f"{kind.value} email to {recipient} failed: {exc}")
            logger.warning(
                "notification_failed",
                kind=kind.value,
                recipient=recipient,
                project_id=payload.get("project_id"),
                error=str(error),
            )
            return False

        logger.info(
            "notification_sent",
            kind=kind.value,
            recipient=recipient,
            project_id=payload.get("project_id"),
        )
        return True

    def dispatch(
        self,
        kind: NotificationKind,
        recipient: str | None,
        payload: dict[str, Any],
    ) -> asyncio.Task[bool]:
        """Schedule ``notify`` on the running loop and return immediately."""
        task = asyncio.create_task(self.notify(kind, recipient, payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def aclose(self, timeout: float = 10.0) -> None:
        """Wait for in-flight sends before shutdown."""
        if not self._pending:
            return
        logger.info("notifier_draining", pending=len(self._pending))
        _, still_running = await asyncio.wait(set(self._pending), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("notifier_drain_timeout", abandoned=len(still_running))
