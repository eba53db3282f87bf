"""
Ledger configuration read from the environment and .env.

Every section reads its own environment prefix, so for example
LEDGER_OPERATION_TIMEOUT=2.5 sets a default deadline on ledger writes.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Where the ledger database lives and how it is opened."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    data_dir: Path = Path("data")
    db_name: str = "ledger.db"

    pool_size: int = Field(default=5, ge=1)
    busy_timeout: int = Field(default=30000, ge=0, description="Milliseconds to wait on a locked database")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name


class LedgerSettings(BaseSettings):
    """Transaction retry, deadline and consumption defaults."""

    model_config = SettingsConfigDict(env_prefix="LEDGER_")

    max_transaction_attempts: int = Field(default=5, ge=1)
    retry_delay: float = Field(default=0.05, ge=0, description="Seconds before the first retry")
    retry_multiplier: float = Field(default=2.0, ge=1)

    # Seconds; None means callers get no deadline unless they pass one
    operation_timeout: float | None = Field(default=None, gt=0)

    # Draw across batches when a request exceeds the oldest batch
    split_consumption_default: bool = False

    idempotency_enabled: bool = True


class APISettings(BaseSettings):
    """HTTP listener and CORS."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    debug: bool = False
    cors_origins: list[str] = ["*"]


class Settings(BaseSettings):
    """Top-level settings; each section reads its own env prefix."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "Stock Ledger"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    storage: StorageSettings = Field(default_factory=StorageSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    api: APISettings = Field(default_factory=APISettings)

    @model_validator(mode="after")
    def check_production(self) -> "Settings":
        if self.environment == "production" and self.api.debug:
            raise ValueError("API_DEBUG must be off in production")
        return self

    @property
    def json_logs(self) -> bool:
        return self.environment != "development"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings, built on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next call rereads the environment."""
    global _settings
    _settings = None
