from __future__ import annotations
"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings

from genstudio.errors import ConfigurationError


class Settings(BaseSettings):
    """genstudio application settings.

    Loaded from environment variables or .env file.
    """

    # --- Application ---
    APP_NAME: str = "genstudio"
    DEBUG: bool = False
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173"

    # --- Runware ---
    RUNWARE_API_KEY: str = ""
    RUNWARE_API_URL: str = "https://api.runware.ai/v1"
    RUNWARE_WS_URL: str = "wss://ws-api.runware.ai/v1"

    # --- Timeouts (seconds) ---
    AUTH_TIMEOUT: float = 10.0
    IMAGE_TIMEOUT: float = 120.0
    HTTP_TIMEOUT: float = 60.0

    # --- Video polling ---
    VIDEO_MAX_POLLS: int = 15
    VIDEO_POLL_INTERVAL: float = 4.0

    # --- Uploads ---
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    def require_api_key(self) -> str:
        """Return the Runware API key or raise ConfigurationError."""
        if not self.RUNWARE_API_KEY:
            raise ConfigurationError("RUNWARE_API_KEY not configured")
        return self.RUNWARE_API_KEY

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings singleton."""
    return Settings()


def mask_key(key: str) -> str:
    """Mask an API key for safe logging: show first 8 and last 4 chars."""
    if len(key) <= 16:
        return "***"
    return f"{key[:8]}...{key[-4:]}"
