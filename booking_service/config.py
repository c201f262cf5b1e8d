"""Application settings, read from the environment and an optional ``.env`` file."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Booking Availability Service"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # Start with a handful of demo bookings in the in-memory repository.
    SEED_DEMO_DATA: bool = False

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


def configure_logging(level: str) -> None:
    """Install a basic root handler; a no-op if logging is already configured."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


settings = Settings()
