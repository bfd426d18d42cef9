"""Tests for application settings."""

import pytest

from checkpoint_sync.config import Settings, parse_csv


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "key")
    monkeypatch.setenv("CAPTURE_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("SERVER_PUSH", "true")
    monkeypatch.setenv("COMPLETED_SESSION_RETENTION", "20")

    settings = Settings()

    assert settings.capture_timeout_seconds == 12.5
    assert settings.server_push is True
    assert settings.completed_session_retention == 20
    assert settings.port == 3001
    assert settings.uploads_dir == "uploads"


def test_parse_csv() -> None:
    assert parse_csv(" image/png, image/jpeg ,,") == ["image/png", "image/jpeg"]
    assert parse_csv(None) == []
