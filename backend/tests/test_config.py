"""Tests for configuration management."""
import pytest


def test_settings_loads_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings should read provider, storage and admin values from env."""
    monkeypatch.setenv("GEMINI_API_KEY", "key-123")
    monkeypatch.setenv("STORAGE_BACKEND", "firestore")
    monkeypatch.setenv("GCP_PROJECT_ID", "my-project")
    monkeypatch.setenv("ADMIN_EMAILS", '["boss@example.com"]')

    from fluentdrama.core.config import Settings
    settings = Settings(_env_file=None)

    assert settings.gemini_api_key == "key-123"
    assert settings.storage_backend == "firestore"
    assert settings.gcp_project_id == "my-project"
    assert settings.admin_emails == ["boss@example.com"]


def test_settings_has_default_values() -> None:
    """Settings should provide sensible defaults for optional fields."""
    from fluentdrama.core.config import Settings
    settings = Settings(_env_file=None)

    assert settings.app_name == "fluentdrama"
    assert settings.backend_port == 8000
    assert settings.frontend_port == 3000
    assert settings.min_audio_bytes == 1000
    assert settings.external_call_timeout == 30.0
    assert settings.opening_playback_delay == 1.5
    assert settings.reply_playback_delay == 0.5
    assert settings.auto_listen_delay == 2.0


def test_settings_missing_session_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    """Settings should raise when the session secret is missing and no .env file."""
    monkeypatch.delenv("SESSION_SECRET", raising=False)

    from pydantic import ValidationError
    from fluentdrama.core.config import Settings

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_get_settings_is_cached() -> None:
    from fluentdrama.core.config import get_settings
    assert get_settings() is get_settings()
