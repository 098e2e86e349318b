"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    google_api_key: str = ""
    canvasprompt_env: str = "development"
    canvasprompt_log_level: str = "debug"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Generation provider
    default_model: str = "gemini-3-pro-image-preview"
    provider_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    # Key-injecting relay used when no client-side key is configured
    relay_url: str = "http://localhost:8000/api/relay"
    relay_timeout_s: float = 9.0
    direct_timeout_s: float = 60.0

    # Capture
    capture_target_size: int = 4096
    reference_target_size: int = 2048
    reference_max_multiplier: float = 2.0
    jpeg_quality: int = 95
    reference_jpeg_quality: int = 90

    # History
    history_capacity: int = 20

    # Persistence: empty = in-memory only
    store_path: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
