"""Application configuration loaded from environment variables."""

from __future__ import annotations

import logging
import sys
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from stagger.scheduling.constants import (
    DEFAULT_BIN_COUNT,
    DEFAULT_INTERVAL_SECONDS,
    MAX_DISTRIBUTION_CV,
)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Settings(BaseSettings):
    """All configuration is loaded from ``STAGGER_*`` environment variables (or .env file)."""

    # --- App ---
    app_name: str = "Stagger"
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"

    # --- Scheduling ---
    interval_seconds: int = Field(default=DEFAULT_INTERVAL_SECONDS, gt=0)
    bin_count: int = Field(default=DEFAULT_BIN_COUNT, gt=0)
    max_distribution_cv: float = Field(default=MAX_DISTRIBUTION_CV, gt=0)

    # Override for the bundled schedule_config.yaml
    schedule_config_path: str | None = None

    model_config = SettingsConfigDict(
        env_prefix="STAGGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging for processes embedding the generator."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stdout,
    )
    logging.getLogger("stagger").info(
        "Logging configured for %s [%s] at %s",
        settings.app_name,
        settings.environment,
        settings.log_level.upper(),
    )
