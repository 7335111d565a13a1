"""Configuration parsing tests."""

import pytest

from src.core.config import DEFAULT_CORS_ORIGINS, Settings

DB_URL = "postgresql+asyncpg://user@localhost:5432/testdb"


def test_booking_defaults() -> None:
    cfg = Settings(database_url=DB_URL, _env_file=None)

    assert cfg.monthly_capacity == 4
    assert cfg.smtp_port == 465
    assert cfg.stripe_currency == "aud"


def test_cors_origins_accepts_csv(monkeypatch) -> None:
    """CSV string in env parses into a list of origins."""
    monkeypatch.setenv(
        "CORS_ORIGINS", "https://cocoacode.dev, https://admin.cocoacode.dev/"
    )
    cfg = Settings(database_url=DB_URL, _env_file=None)

    assert cfg.cors_origins == ["https://cocoacode.dev", "https://admin.cocoacode.dev"]


def test_cors_origins_accepts_json_array(monkeypatch) -> None:
    monkeypatch.setenv(
        "CORS_ORIGINS", '["https://cocoacode.dev","https://cocoacode.dev"]'
    )
    cfg = Settings(database_url=DB_URL, _env_file=None)

    assert cfg.cors_origins == ["https://cocoacode.dev"]


def test_cors_origins_blank_uses_defaults(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "  ")
    cfg = Settings(database_url=DB_URL, _env_file=None)

    assert cfg.cors_origins == DEFAULT_CORS_ORIGINS


def test_cors_origins_rejects_invalid_object(monkeypatch) -> None:
    """Invalid values fail with a clear validation error."""
    monkeypatch.setenv("CORS_ORIGINS", '{"invalid":"json"}')

    with pytest.raises(Exception) as exc_info:
        Settings(database_url=DB_URL, _env_file=None)
    assert "CORS_ORIGINS" in str(exc_info.value)


def test_admin_recipient_falls_back_to_smtp_user() -> None:
    cfg = Settings(database_url=DB_URL, smtp_user="studio@example.com", _env_file=None)
    assert cfg.admin_recipient == "studio@example.com"

    cfg = Settings(
        database_url=DB_URL,
        smtp_user="studio@example.com",
        admin_email="owner@example.com",
        _env_file=None,
    )
    assert cfg.admin_recipient == "owner@example.com"
