"""Transactional email for booking lifecycle events."""

from src.notifications.mailer import SmtpMailer
from src.notifications.service import NotificationKind, Notifier
from src.notifications.templates import RenderedEmail

__all__ = [
    "NotificationKind",
    "Notifier",
    "RenderedEmail",
    "SmtpMailer",
]
