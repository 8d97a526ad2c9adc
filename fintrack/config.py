"""
Configuration loading for fintrack.

Loads non-secret settings from config.yaml, secrets from environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from fintrack.cache import CacheConfig
from fintrack.roles import Role


class AppConfig(BaseModel):
    """Application configuration. Secrets come from env vars, rest from YAML."""

    # Secrets (from environment only)
    api_key: Optional[str] = None

    # Transaction list cache, in seconds
    cache_ttl: int = Field(default=300, ge=0)
    cache_stale_time: int = Field(default=60, ge=0)

    # Identity used for requests that do not carry one
    default_user_id: str = Field(default="user-123", min_length=1)
    default_role: Role = Role.user

    # Load the sample transactions and shares at startup
    seed_transactions: bool = True
    # Load the sample user directory at startup
    seed_users: bool = True

    @model_validator(mode="after")
    def validate_stale_within_ttl(self) -> "AppConfig":
        if self.cache_stale_time > self.cache_ttl:
            raise ValueError(
                f"cache_stale_time ({self.cache_stale_time}) must not exceed "
                f"cache_ttl ({self.cache_ttl})"
            )
        return self

    def cache_config(self) -> CacheConfig:
        return CacheConfig(ttl=self.cache_ttl, stale_time=self.cache_stale_time)


def load_config(config_path: str | None = None) -> AppConfig:
    """
    Load configuration from YAML file + environment variables.

    Args:
        config_path: Path to config.yaml. If None, reads CONFIG_PATH env var
                     (default: config.yaml in current directory).

    Returns:
        Validated AppConfig instance.
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "config.yaml")

    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        raw = {}

    # Inject secrets from environment (never from YAML)
    config_data = {
        **raw,
        "api_key": os.environ.get("API_KEY"),
    }

    return AppConfig(**config_data)
