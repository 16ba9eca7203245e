"""Runtime settings for varstore."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass
class Settings:
    """Process-wide settings.

    Attributes:
        log_level: Level name used by the CLI to configure logging
        notify_workers: Threads delivering notifications outside an event loop
        parse_cache_size: Number of parsed expressions kept by evaluate()
    """

    log_level: str = "WARNING"
    notify_workers: int = 1
    parse_cache_size: int = 256

    @classmethod
    def from_env(cls) -> Settings:
        """Create settings from environment variables.

        Reads VARSTORE_LOG_LEVEL, VARSTORE_NOTIFY_WORKERS and
        VARSTORE_PARSE_CACHE_SIZE, falling back to the defaults.
        """
        return cls(
            log_level=os.environ.get("VARSTORE_LOG_LEVEL", "WARNING").upper(),
            notify_workers=max(1, _int_env("VARSTORE_NOTIFY_WORKERS", 1)),
            parse_cache_size=max(0, _int_env("VARSTORE_PARSE_CACHE_SIZE", 256)),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, reading the environment once."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings. Primarily for testing."""
    global _settings
    _settings = None
