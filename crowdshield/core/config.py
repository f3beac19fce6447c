"""
CrowdShield - Configuration Management
Centralized configuration using pydantic-settings.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_level_overrides: str = ""

    # Database
    database_url: str = "sqlite:///./crowdshield.db"

    # Audio blob storage
    storage_dir: str = "./storage"
    public_base_url: str = "http://localhost:8000"

    # Classification endpoint called by devices
    ai_analysis_url: Optional[str] = None
    ai_analysis_api_key: Optional[str] = None
    classification_timeout_seconds: float = 10.0

    # Generative AI gateway called by the analyze endpoint
    ai_gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    ai_gateway_api_key: Optional[str] = None
    ai_model: str = "google/gemini-3-flash-preview"

    # Reporting
    rate_limit_seconds: int = 60
    report_text_max_length: int = 100
    submitted_display_seconds: float = 3.0
    geolocation_timeout_seconds: float = 10.0
    auto_locate: bool = True
    device_state_path: str = "~/.crowdshield/device.json"
    max_audio_upload_bytes: int = 10 * 1024 * 1024

    # Dashboard
    zone_window_seconds: int = 120
    feed_lookback_hours: int = 24
    feed_limit: int = 50
    dashboard_timezone: str = "UTC"
    organizer_api_key: Optional[str] = None

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
