"""Email templates for booking lifecycle notifications.

Each template takes the notification payload and returns a subject, a plain
text body and an HTML body. Payload values are escaped before they reach
the HTML.
"""

from dataclasses import dataclass
from html import escape
from typing import Any

THEME = {
    "brand": "#8B4513",
    "brand_dark": "#654321",
    "background": "#F5F5DC",
    "border": "#D2B48C",
    "success": "#28a745",
    "danger": "#dc3545",
}

SUPPORT_EMAIL = "hello@cocoacode.dev"


@dataclass(frozen=True)
class RenderedEmail:
    """A fully rendered email ready for the mailer."""

    subject: str
    text: str
    html: str


def _value(payload: dict[str, Any], key: str, fallback: str = "-") -> str:
    value = payload.get(key)
    if value is None or value == "":
        return fallback
    return str(value)


def _price(payload: dict[str, Any], key: str) -> str:
    return f"${_value(payload, key, '0')} {_value(payload, 'currency', 'AUD').upper()}"


def _rows(rows: list[tuple[str, str]]) -> str:
    return "".join(
        f"<p><strong>{escape(label)}:</strong> {escape(value)}</p>" for label, value in rows
    )


def _layout(studio_name: str, heading: str, body: str, accent: str) -> str:
    return f"""
    <div style="font-family: 'Courier New', monospace; max-width: 600px; margin: 0 auto;
                background: {THEME['background']}; padding: 20px; border-radius: 15px;
                border: 2px solid {accent};">
      <div style="text-align: center; margin-bottom: 20px;">
        <h1 style="color: {THEME['brand']}; margin: 0;">{escape(studio_name)}</h1>
      </div>
      <h2 style="color: {accent};">{heading}</h2>
      {body}
      <hr style="border: 1px solid {THEME['border']}; margin: 30px 0;">
      <p style="color: {THEME['brand_dark']}; font-size: 14px; text-align: center;">
        Questions? Reply to this email or contact us at
        <a href="mailto:{SUPPORT_EMAIL}" style="color: {THEME['brand']};">{SUPPORT_EMAIL}</a>
      </p>
    </div>
    """


def _summary(payload: dict[str, Any], status_label: str) -> list[tuple[str, str]]:
    return [
        ("Project ID", _value(payload, "project_id")),
        ("Project Type", _value(payload, "project_type", "custom")),
        ("Booking Month", _value(payload, "booking_month", "To be determined")),
        ("Total Price", _price(payload, "total_price")),
        ("Status", status_label),
    ]


def _text(title: str, rows: list[tuple[str, str]], *extra: str) -> str:
    lines = [title, *(f"{label}: {value}" for label, value in rows), *extra]
    return "\n".join(lines)


def booking_received_template(payload: dict[str, Any], studio_name: str) -> RenderedEmail:
    """Confirmation sent to the client when a booking is submitted."""
    name = _value(payload, "client_name", "there")
    rows = _summary(payload, "Pending Review")
    specs = _value(payload, "specifications")
    body = (
        "<p>We've received your project booking request and are reviewing it.</p>"
        + _rows(rows)
        + f"<p><em>{escape(specs)}</em></p>"
        + "<p>No payment is taken until your booking has been approved.</p>"
    )
    return RenderedEmail(
        subject=f"{studio_name} - Booking Request Received",
        text=_text(
            f"{studio_name} - booking request received",
            rows,
            f"Project Specifications: {specs}",
        ),
        html=_layout(studio_name, f"Thank you, {escape(name)}!", body, THEME["brand"]),
    )


def approved_template(payload: dict[str, Any], studio_name: str) -> RenderedEmail:
    """Sent to the client when the admin approves the booking."""
    name = _value(payload, "client_name")
    rows = _summary(payload, "APPROVED")
    body = (
        "<p>Your project booking has been <strong>approved</strong>.</p>"
        + _rows(rows)
        + "<p>Work begins as soon as your payment is confirmed.</p>"
    )
    return RenderedEmail(
        subject=f"{studio_name} - Project Booking Approved",
        text=_text(f"{studio_name} - booking APPROVED", rows),
        html=_layout(studio_name, f"Great news, {escape(name)}!", body, THEME["success"]),
    )


def declined_template(payload: dict[str, Any], studio_name: str) -> RenderedEmail:
    """Sent to the client when the admin declines the booking."""
    name = _value(payload, "client_name")
    rows = [
        ("Project ID", _value(payload, "project_id")),
        ("Project Type", _value(payload, "project_type", "custom")),
        ("Requested Month", _value(payload, "booking_month", "Not specified")),
    ]
    body = (
        "<p>After reviewing your request we're unable to take on this booking.</p>"
        + _rows(rows)
        + "<p><strong>No payment has been processed.</strong></p>"
    )
    return RenderedEmail(
        subject=f"{studio_name} - Project Booking Update",
        text=_text(
            f"{studio_name} - booking cannot be accepted",
            rows,
            "No payment has been processed.",
        ),
        html=_layout(studio_name, f"Hi {escape(name)},", body, THEME["danger"]),
    )


def payment_confirmed_template(payload: dict[str, Any], studio_name: str) -> RenderedEmail:
    """Sent to the client when a payment succeeds and work starts."""
    name = _value(payload, "client_name")
    rows = [
        ("Project ID", _value(payload, "project_id")),
        ("Amount Charged", _price(payload, "amount")),
        ("Payment Reference", _value(payload, "payment_reference")),
        ("Status", "IN PROGRESS"),
    ]
    body = "<p>Your payment has been processed and your project is starting.</p>" + _rows(
        rows
    )
    return RenderedEmail(
        subject=f"{studio_name} - Payment Confirmed, Project Starting",
        text=_text(f"{studio_name} - payment confirmed", rows),
        html=_layout(
            studio_name, f"Payment Confirmed, {escape(name)}!", body, THEME["success"]
        ),
    )


def admin_alert_template(payload: dict[str, Any], studio_name: str) -> RenderedEmail:
    """New-booking alert for the studio inbox."""
    rows = [
        ("Client", _value(payload, "client_name")),
        ("Email", _value(payload, "client_email")),
        *_summary(payload, _value(payload, "status", "pending")),
    ]
    specs = _value(payload, "specifications")
    body = _rows(rows) + f"<p><em>{escape(specs)}</em></p>"
    return RenderedEmail(
        subject=f"New booking #{_value(payload, 'project_id')} from {_value(payload, 'client_name')}",
        text=_text("New booking received", rows, f"Specifications: {specs}"),
        html=_layout(studio_name, "New booking received", body, THEME["brand"]),
    )
