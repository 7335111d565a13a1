"""Application configuration using Pydantic Settings."""

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


DEFAULT_CORS_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str
    """Database connection URL (asyncpg driver in production)."""

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    """Redis connection URL for health checks and circuit breaker state."""

    # Error Tracking
    sentry_dsn: str | None = None
    """Sentry DSN for error tracking. Optional."""

    # Environment
    environment: str = "development"
    """Current environment (development, staging, production)."""

    debug: bool = False
    """Enable debug mode."""

    log_format: str | None = None
    """Logging format override (json or console). Defaults by environment."""

    # Bookings
    monthly_capacity: int = 4
    """Maximum non-cancelled project bookings per booking month."""

    studio_name: str = "Cocoa Code"
    """Studio name used in outgoing email."""

    admin_api_key: str | None = None
    """API key required for admin endpoints (X-Admin-Api-Key)."""

    admin_email: str | None = None
    """Recipient for new-booking alerts. Falls back to SMTP_USER."""

    # Email
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 465
    """465 uses implicit SSL, anything else uses STARTTLS."""

    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_secure: bool = True
    smtp_timeout: int = 30
    email_from_name: str = "Cocoa Code"

    # Payments
    stripe_secret_key: str | None = None
    """Stripe secret key. Payment endpoints return 503 without it."""

    stripe_webhook_secret: str | None = None
    """Signing secret for the Stripe webhook endpoint."""

    stripe_currency: str = "aud"

    # NoDecode prevents pydantic-settings from forcing JSON parsing at the
    # env-source layer, so we can accept either JSON arrays or CSV strings.
    cors_origins: Annotated[list[str], NoDecode] = DEFAULT_CORS_ORIGINS
    """Origins allowed by the CORS middleware."""

    @property
    def admin_recipient(self) -> str | None:
        """Address that receives admin alerts."""
        return self.admin_email or self.smtp_user

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value: object) -> list[str]:
        """Parse CORS origins from JSON array, CSV, or list."""
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return DEFAULT_CORS_ORIGINS.copy()

            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                decoded = None

            if isinstance(decoded, list):
                return _normalize_origins(decoded)
            if isinstance(decoded, str):
                text = decoded
            elif decoded is not None:
                raise ValueError(
                    "CORS_ORIGINS must be a JSON array or comma-separated string."
                )

            # Fallback: comma-separated values
            return _normalize_origins(item.strip() for item in text.split(","))

        if isinstance(value, (list, tuple, set)):
            return _normalize_origins(value)

        raise ValueError("CORS_ORIGINS must be a string, list, tuple, or set.")


def _normalize_origins(values: Iterable[object]) -> list[str]:
    """Normalize and dedupe origins while preserving declaration order."""
    normalized: list[str] = []
    seen: set[str] = set()
    for raw_item in values:
        item = str(raw_item).strip().strip("'").strip('"').rstrip("/")
        if not item or item in seen:
            continue
        normalized.append(item)
        seen.add(item)

    if not normalized:
        return DEFAULT_CORS_ORIGINS.copy()
    return normalized


try:
    settings = Settings()
except Exception as exc:
    env_file = Path(".env")
    root_error = str(exc)
    suggestions = [
        "Ensure DATABASE_URL is set.",
        "Allowed values for CORS_ORIGINS are:",
        '  1) ["https://cocoacode.dev","http://localhost:5173"]',
        "  2) https://cocoacode.dev,http://localhost:5173",
    ]

    raise RuntimeError(
        "Failed to initialize application settings. "
        f"Check environment variables in {env_file.resolve() if env_file.exists() else '.env'}.\n"
        + f"Error: {root_error}\n"
        + "\n".join(suggestions)
    ) from exc
