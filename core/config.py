"""Settings for the ledger, read from ``LEDGER_*`` environment variables."""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    log_level: str = Field(default="INFO", description="Root logging level")
    timing_enabled: bool = Field(
        default=False,
        description="Log execution time of ledger mutations"
    )
    balance_alert_threshold: int = Field(
        default=0,
        ge=0,
        description="Publish a balance alert below this balance (0 disables)"
    )
    seed_path: str = Field(default="data/seed.json", description="JSON file loaded at startup")
    currency: str = Field(default="KZT", description="Label shown next to amounts")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level {v!r}")
        return level


@lru_cache
def get_settings() -> LedgerSettings:
    return LedgerSettings()


def configure_logging(settings: LedgerSettings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
