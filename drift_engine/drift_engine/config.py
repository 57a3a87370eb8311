"""Drift engine configuration loaded from environment variables."""

from __future__ import annotations

import logging

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from drift_engine.models.metadata import DEFAULT_METADATA_VERSION, assert_metadata_version

logger = logging.getLogger(__name__)


class DriftSettings(BaseSettings):
    """Settings loaded from environment variables with the HOUSEKIT_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="HOUSEKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Metadata
    auto_upgrade_metadata: bool = False
    metadata_version: str = DEFAULT_METADATA_VERSION

    # Introspection
    fetch_workers: int = Field(default=1, ge=1)

    # Shadow swap naming
    shadow_suffix: str = "__shadow_"
    backup_suffix: str = "__backup_"

    @field_validator("metadata_version")
    @classmethod
    def check_metadata_version(cls, v: str) -> str:
        return assert_metadata_version(v)


def load_settings(**overrides: object) -> DriftSettings:
    """Load settings from environment, with optional overrides for testing."""
    settings = DriftSettings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info(
            "Loaded drift settings: metadata_version=%s auto_upgrade_metadata=%s fetch_workers=%d",
            settings.metadata_version,
            settings.auto_upgrade_metadata,
            settings.fetch_workers,
        )

    return settings
