"""Configuration management for the SlopWatch API service."""
from pydantic_settings import BaseSettings, SettingsConfigDict

from slopwatch.shared.models import (
    ACCURACY_THRESHOLD,
    MAX_BATCH_IDS,
    RATE_LIMIT,
    RATE_WINDOW_SECONDS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Service configuration
    SERVICE_NAME: str = "slopwatch-api"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Server configuration
    HOST: str = "0.0.0.0"
    PORT: int = 5023

    # Snapshot file holding counts, voters and statistics
    DATA_FILE: str = "./data.json"

    # Vote rules
    ACCURACY_THRESHOLD: int = ACCURACY_THRESHOLD
    MAX_BATCH_IDS: int = MAX_BATCH_IDS

    # Per-user limit on vote toggles
    RATE_LIMIT_REQUESTS: int = RATE_LIMIT
    RATE_LIMIT_WINDOW_SECONDS: float = RATE_WINDOW_SECONDS

    # Per-address ceiling on vote toggles, applied by slowapi before the
    # per-user limit. User IDs are self-issued, so this bounds one address
    # cycling through fresh IDs. Read on every request.
    IP_RATE_LIMIT: str = "1000/minute"

    # CORS settings
    CORS_ORIGINS: list = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = False
    CORS_ALLOW_METHODS: list = ["*"]
    CORS_ALLOW_HEADERS: list = ["*"]

    @property
    def log_level(self) -> str:
        """Effective log level name."""
        return "DEBUG" if self.DEBUG else self.LOG_LEVEL.upper()


settings = Settings()
