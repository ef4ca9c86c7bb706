from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from .constants import DEFAULT_CONFIG_PATH, ENV_PREFIX


@dataclass(frozen=True, slots=True)
class Settings:
    """Process settings sourced from environment variables."""

    config_path: Path = DEFAULT_CONFIG_PATH
    log_level: str | None = None


def _parse_level(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().upper()
    if normalized in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        return normalized
    if normalized == "WARN":
        return "WARNING"
    return None


def _read_settings() -> Settings:
    config_env = os.getenv(f"{ENV_PREFIX}CONFIG_PATH")
    level_env = os.getenv(f"{ENV_PREFIX}LOG_LEVEL")
    config_path = Path(config_env) if config_env else DEFAULT_CONFIG_PATH
    return Settings(config_path=config_path, log_level=_parse_level(level_env))


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return _read_settings()


__all__ = ["Settings", "get_settings"]
