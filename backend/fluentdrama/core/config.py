"""Configuration management using pydantic-settings."""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Cookie session signing key (required)
    session_secret: str

    # Gemini API (all AI calls fail uniformly when the key is missing)
    gemini_api_key: str = ""
    chat_model: str = "gemini-2.5-flash"
    image_model: str = "gemini-2.5-flash-image"
    tts_model: str = "gemini-2.5-flash-preview-tts"
    transcription_model: str = "gemini-2.5-flash"

    # Persistence: "firestore" or "memory"
    storage_backend: str = "firestore"
    gcp_project_id: str = ""
    images_dir: str = "data/images"

    # Accounts with unlimited usage and access to /api/admin
    admin_emails: list[str] = Field(default_factory=list)

    # Google OAuth
    google_client_id: str = ""
    google_client_secret: str = ""
    google_redirect_uri: str = "http://localhost:8000/api/google/callback"

    # Paddle billing
    paddle_api_key: str = ""
    paddle_api_url: str = "https://api.paddle.com"
    paddle_price_ids: dict[str, str] = Field(default_factory=dict)

    # External calls made during a scene
    external_call_timeout: float = 30.0
    min_audio_bytes: int = 1000

    # Scene timings (seconds)
    opening_playback_delay: float = 1.5
    reply_playback_delay: float = 0.5
    auto_listen_delay: float = 2.0

    # Application settings
    app_name: str = "fluentdrama"

    # Server settings
    backend_host: str = "localhost"
    backend_port: int = 8000
    frontend_port: int = 3000


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
