"""Library-wide settings.

Loaded from environment variables prefixed with ``ROW_FORGE_`` (and an
optional ``.env`` file). Connection details live on ``ConnectionConfig``;
these settings tune parameter binding, the convenience cache and logging.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RowForgeSettings(BaseSettings):
    """Tunables for the mapping engine."""

    # Parameter slots: values at or under these lengths share one size bucket.
    string_size_threshold: int = Field(4000, gt=0)
    binary_size_threshold: int = Field(8000, gt=0)

    # Convenience cache: None keeps every entry for the life of the connection.
    execution_cache_max_entries: int | None = Field(None, gt=0)

    log_level: str = "WARNING"
    json_logs: bool = False

    model_config = SettingsConfigDict(
        env_prefix="ROW_FORGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> RowForgeSettings:
    """Return the cached settings instance."""
    return RowForgeSettings()


__all__ = ["RowForgeSettings", "get_settings"]
