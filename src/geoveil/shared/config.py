"""Runtime configuration."""
import logging
import secrets
from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def generate_master_key() -> str:
    """Generate a fresh 256-bit master key, hex encoded."""
    return secrets.token_hex(32)


class Settings(BaseSettings):
    """Settings loaded from GEOVEIL_* environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_prefix="GEOVEIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # None means a random key per process; indexes built with it cannot be
    # queried after a restart.
    master_key: Optional[str] = None

    # Search defaults
    default_radius_km: float = 5.0
    max_radius_km: float = 50.0
    default_limit: int = 50

    # Result cache
    cache_max_entries: int = 100
    cache_max_age_seconds: float = 300.0

    # Query tokens
    token_ttl_seconds: float = 300.0
    enforce_token_expiry: bool = False

    # Transform / index
    noise_scale: float = 0.001
    index_max_entries: int = 9

    # Logging
    log_level: str = "INFO"

    @field_validator(
        "default_radius_km",
        "max_radius_km",
        "default_limit",
        "cache_max_entries",
        "cache_max_age_seconds",
        "token_ttl_seconds",
    )
    @classmethod
    def must_be_positive(cls, v):
        if v <= 0:
            raise ValueError(f"must be > 0, got {v}")
        return v

    @field_validator("index_max_entries")
    @classmethod
    def fanout_at_least_four(cls, v):
        if v < 4:
            raise ValueError(f"index_max_entries must be >= 4, got {v}")
        return v

    @field_validator("noise_scale")
    @classmethod
    def noise_not_negative(cls, v):
        if v < 0:
            raise ValueError(f"noise_scale must be >= 0, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def known_log_level(cls, v: str) -> str:
        level = v.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level

    def resolved_master_key(self) -> str:
        """The configured master key, generating one on first use."""
        if self.master_key is None:
            self.master_key = generate_master_key()
        return self.master_key


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings instance."""
    return Settings()
