"""Pydantic settings for the donation vault engine."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Vault fees
    default_fee_rate_bps: int = Field(default=0, ge=0, le=10_000, description="Performance fee for new vaults")
    max_fee_rate_bps: int = Field(default=5_000, ge=0, le=10_000, description="Upper bound accepted by set_fee_rate")

    # Liquidity
    auto_deploy_idle: bool = Field(default=True, description="Forward idle vault balance to the yield source on deposit")

    # Donations
    default_donation_preset: str = Field(default="balanced", description="Preset applied by new donation ledgers")

    # Reallocation
    migration_deadline_seconds: int = Field(default=1_200, ge=1, le=86_400, description="Default migration validity window")

    # Keeper simulation
    simulation_seed: int = Field(default=7, description="Seed for simulated yield paths")
    storage_dir: Path = Field(default=Path(".cache/donation_vaults"), description="Simulation result directory")

    log_level: str = Field(default="INFO", description="Root log level for configure_logging()")

    @field_validator("default_donation_preset", mode="before")
    @classmethod
    def parse_preset(cls, v):
        """Normalize preset names to lower case."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        """Accept any case for the level name."""
        if isinstance(v, str):
            v = v.strip().upper()
            if not isinstance(logging.getLevelName(v), int):
                raise ValueError(f"Unknown log level: {v}")
        return v

    @field_validator("storage_dir", mode="before")
    @classmethod
    def parse_storage_dir(cls, v):
        """Convert string to Path."""
        if isinstance(v, str):
            return Path(v)
        return v

    def ensure_storage_dir(self) -> Path:
        """Ensure storage directory exists and return it."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        return self.storage_dir


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure root logging from settings."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
