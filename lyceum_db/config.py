"""Configuration and settings for the document store."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DB_URL = "sqlite+pysqlite:///lyceum.db"
DEFAULT_DATABASE = "lyceum"
DEFAULT_TABLES: tuple[str, ...] = (
    "artifact",
    "item",
    "library",
    "organization",
    "role",
    "user",
)


class StoreSettings(BaseSettings):
    """Connection and provisioning settings, read from ``LYCEUM_*`` variables."""

    model_config = SettingsConfigDict(
        env_prefix="LYCEUM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection
    db_url: str = DEFAULT_DB_URL
    db_con_initial: int = Field(default=5, ge=1)  # connections kept in the pool
    db_con_max: int = Field(default=20, ge=1)
    db_pool_timeout: float = Field(default=30.0, gt=0)
    db_echo: bool = False

    # Provisioning
    database: str = DEFAULT_DATABASE
    tables: tuple[str, ...] = DEFAULT_TABLES

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> StoreSettings:
        if self.db_con_max < self.db_con_initial:
            raise ValueError("db_con_max must be greater than or equal to db_con_initial")
        return self


@lru_cache
def get_settings() -> StoreSettings:
    """Get cached settings instance."""
    return StoreSettings()


__all__ = ["DEFAULT_DATABASE", "DEFAULT_DB_URL", "DEFAULT_TABLES", "StoreSettings", "get_settings"]
