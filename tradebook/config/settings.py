import sys
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application-wide settings.
    Read from environment variables (.env) and validated by type.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Risk model: "auto" uses price candles when a provider is configured
    RISK_MODEL: str = "auto"

    # Finnhub (historical daily candles)
    FINNHUB_API_KEY: Optional[str] = None
    FINNHUB_BASE_URL: str = "https://finnhub.io/api/v1"
    HTTP_TIMEOUT_SECONDS: int = 10

    # Notion storage
    NOTION_TOKEN: Optional[str] = None
    NOTION_POSITIONS_DB_ID: Optional[str] = None
    NOTION_METRICS_DB_ID: Optional[str] = None
    NOTION_CONNECTIONS_DB_ID: Optional[str] = None

    # Scoring / import behaviour
    MIN_SAMPLE_SIZE: int = 30
    IMPORT_BATCH_SIZE: int = 50

    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    DRY_RUN: bool = False


# Singleton Instance
try:
    settings = Settings()
except Exception as e:
    # logging depends on settings, so report straight to stderr
    print(f"CRITICAL: Failed to load configuration. Invalid env vars? {e}", file=sys.stderr)
    settings = None
